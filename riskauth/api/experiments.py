# riskauth/api/experiments.py
"""
A/B experiment API endpoints
"""
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
import logging

from riskauth import db
from riskauth.models.schemas import ExperimentCreateRequest, ExperimentUpdateRequest
from riskauth.services.experiment_service import ExperimentService, ExperimentNotFound
from riskauth.utils.helpers import parse_body, query_flag, error_details, RequestValidationError

logger = logging.getLogger(__name__)
experiments_bp = Blueprint('experiments', __name__)
experiment_service = ExperimentService()


def _arm_config(arm):
    return arm.model_dump(exclude_none=True) if arm is not None else None


@experiments_bp.route('', methods=['GET'])
def list_experiments():
    try:
        experiments = experiment_service.list_experiments(running_only=query_flag('active'))
        return jsonify([e.to_dict() for e in experiments]), 200
    except Exception as e:
        logger.error(f"Error fetching experiments: {e}")
        return jsonify({'error': 'Failed to fetch experiments'}), 500


@experiments_bp.route('/<experiment_id>', methods=['GET'])
def get_experiment(experiment_id):
    try:
        experiment = experiment_service.get_experiment(experiment_id)
        if not experiment:
            return jsonify({'error': 'Experiment not found'}), 404
        return jsonify(experiment.to_dict()), 200
    except Exception as e:
        logger.error(f"Error fetching experiment {experiment_id}: {e}")
        return jsonify({'error': 'Failed to fetch experiment'}), 500


@experiments_bp.route('', methods=['POST'])
@jwt_required()
def create_experiment():
    try:
        data = parse_body(ExperimentCreateRequest)

        experiment = experiment_service.create_experiment(
            data.name,
            description=data.description,
            status=data.status.value,
            traffic_split=data.traffic_split,
            control_config=_arm_config(data.control_config),
            variant_config=_arm_config(data.variant_config),
            actor_id=get_jwt_identity()
        )
        return jsonify(experiment.to_dict()), 201

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except Exception as e:
        logger.error(f"Error creating experiment: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to create experiment'}), 500


@experiments_bp.route('/<experiment_id>', methods=['PATCH'])
@jwt_required()
def update_experiment(experiment_id):
    try:
        data = parse_body(ExperimentUpdateRequest)

        experiment = experiment_service.update_experiment(experiment_id, {
            'name': data.name,
            'description': data.description,
            'status': data.status.value if data.status else None,
            'traffic_split': data.traffic_split,
            'control_config': _arm_config(data.control_config),
            'variant_config': _arm_config(data.variant_config)
        }, actor_id=get_jwt_identity())
        return jsonify(experiment.to_dict()), 200

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except ExperimentNotFound:
        return jsonify({'error': 'Experiment not found'}), 404
    except Exception as e:
        logger.error(f"Error updating experiment {experiment_id}: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to update experiment'}), 500


@experiments_bp.route('/<experiment_id>/results', methods=['GET'])
def get_results(experiment_id):
    """Pass rates per arm with a two-proportion significance test"""
    try:
        return jsonify(experiment_service.results(experiment_id)), 200
    except ExperimentNotFound:
        return jsonify({'error': 'Experiment not found'}), 404
    except Exception as e:
        logger.error(f"Error computing results for experiment {experiment_id}: {e}")
        return jsonify({'error': 'Failed to compute experiment results'}), 500
