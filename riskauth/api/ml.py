# ==========================================
# riskauth/api/ml.py
"""
Risk scoring API endpoints
"""
from flask import Blueprint, request, jsonify
import logging

from riskauth import db
from riskauth.models.schemas import ScoreRequest, AnomalyCheckRequest
from riskauth.services.experiment_service import ExperimentNotFound
from riskauth.services.scoring_service import ScoringService
from riskauth.utils.helpers import parse_body, query_limit, error_details, RequestValidationError

logger = logging.getLogger(__name__)
ml_bp = Blueprint('ml', __name__)
scoring_service = ScoringService()


@ml_bp.route('/score', methods=['POST'])
def score():
    """Composite risk score for a user/device/TLS triple"""
    try:
        data = parse_body(ScoreRequest)

        result = scoring_service.score(
            data.user_id,
            device_id=data.device_id,
            tls_fingerprint=data.tls_fingerprint,
            sample=data.current_behavior.to_sample() if data.current_behavior else None,
            session_id=data.session_id,
            weights=data.weights.to_weights() if data.weights else None,
            experiment_id=data.experiment_id
        )
        return jsonify(result), 200

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except ExperimentNotFound:
        return jsonify({'error': 'Experiment not found'}), 404
    except Exception as e:
        logger.error(f"Error computing ML score: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to compute ML score'}), 500


@ml_bp.route('/baseline/<user_id>', methods=['GET'])
def get_baseline(user_id):
    try:
        return jsonify(scoring_service.get_baseline(user_id)), 200
    except Exception as e:
        logger.error(f"Error fetching user baseline: {e}")
        return jsonify({'error': 'Failed to fetch user baseline'}), 500


@ml_bp.route('/anomaly-check', methods=['POST'])
def anomaly_check():
    """Behavioral anomaly check without device/TLS signals"""
    try:
        data = parse_body(AnomalyCheckRequest)
        result = scoring_service.check_anomaly(data.user_id, data.current_behavior.to_sample())
        return jsonify(result), 200

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except Exception as e:
        logger.error(f"Error checking anomaly: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to check anomaly'}), 500


@ml_bp.route('/risk-scores', methods=['GET'])
def list_risk_scores():
    """Most recent persisted assessments"""
    try:
        scores = scoring_service.recent_scores(
            user_id=request.args.get('userId'),
            limit=query_limit()
        )
        return jsonify([s.to_dict() for s in scores]), 200
    except Exception as e:
        logger.error(f"Error fetching risk scores: {e}")
        return jsonify({'error': 'Failed to fetch risk scores'}), 500
