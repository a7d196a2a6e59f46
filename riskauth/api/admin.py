# riskauth/api/admin.py
"""
Admin settings API: scoring thresholds, weights and alerting
"""
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
import logging

from riskauth import db
from riskauth.core.policy import WeightConfigurationError
from riskauth.models.schemas import SettingUpdateRequest, SettingsBulkUpdateRequest
from riskauth.services.settings_service import SettingsService
from riskauth.utils.helpers import parse_body, error_details, audit_context, RequestValidationError

logger = logging.getLogger(__name__)
admin_bp = Blueprint('admin', __name__)
settings_service = SettingsService()


@admin_bp.route('/settings', methods=['GET'])
def list_settings():
    try:
        return jsonify([s.to_dict() for s in settings_service.list_settings()]), 200
    except Exception as e:
        logger.error(f"Error fetching admin settings: {e}")
        return jsonify({'error': 'Failed to fetch admin settings'}), 500


@admin_bp.route('/settings/<key>', methods=['GET'])
def get_setting(key):
    try:
        setting = settings_service.get_setting(key)
        if not setting:
            return jsonify({'error': 'Setting not found'}), 404
        return jsonify(setting.to_dict()), 200
    except Exception as e:
        logger.error(f"Error fetching admin setting {key}: {e}")
        return jsonify({'error': 'Failed to fetch admin setting'}), 500


@admin_bp.route('/settings/<key>', methods=['PUT'])
@jwt_required()
def update_setting(key):
    try:
        data = parse_body(SettingUpdateRequest)

        setting = settings_service.update_setting(
            key,
            data.value,
            description=data.description,
            category=data.category,
            **audit_context(get_jwt_identity())
        )
        return jsonify(setting.to_dict()), 200

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except WeightConfigurationError as e:
        return jsonify({'error': 'Invalid scoring weights', 'message': str(e)}), 400
    except (TypeError, ValueError) as e:
        db.session.rollback()
        return jsonify({'error': 'Invalid setting value', 'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error updating admin setting {key}: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to update admin setting'}), 500


@admin_bp.route('/settings', methods=['PUT'])
@jwt_required()
def update_settings():
    """Apply several settings at once, e.g. all three weights"""
    try:
        data = parse_body(SettingsBulkUpdateRequest)

        settings = settings_service.update_settings(data.settings, **audit_context(get_jwt_identity()))
        return jsonify([s.to_dict() for s in settings]), 200

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except WeightConfigurationError as e:
        return jsonify({'error': 'Invalid scoring weights', 'message': str(e)}), 400
    except (TypeError, ValueError) as e:
        db.session.rollback()
        return jsonify({'error': 'Invalid setting value', 'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error updating admin settings: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to update admin settings'}), 500


@admin_bp.route('/policy', methods=['GET'])
def get_policy():
    """Decision policy currently applied to scoring requests"""
    try:
        policy = settings_service.current_policy()
        return jsonify({
            **policy.to_dict(),
            'weightsNormalized': policy.weights.is_normalized()
        }), 200
    except Exception as e:
        logger.error(f"Error resolving decision policy: {e}")
        return jsonify({'error': 'Failed to resolve decision policy'}), 500
