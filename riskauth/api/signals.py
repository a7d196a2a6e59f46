# riskauth/api/signals.py
"""
Signal ingestion endpoints for behavioral patterns, devices and TLS fingerprints
"""
from flask import Blueprint, request, jsonify
import logging

from riskauth import db
from riskauth.models.schemas import BehavioralPatternIn, DeviceProfileIn, TlsFingerprintIn
from riskauth.services.signal_service import SignalService, DeviceOwnershipConflict
from riskauth.utils.helpers import parse_body, query_limit, error_details, RequestValidationError

logger = logging.getLogger(__name__)
signals_bp = Blueprint('signals', __name__)
signal_service = SignalService()


@signals_bp.route('/behavioral-patterns', methods=['POST'])
def create_behavioral_pattern():
    try:
        data = parse_body(BehavioralPatternIn)

        pattern = signal_service.record_behavioral_pattern(
            data.to_sample(),
            user_id=data.user_id,
            session_id=data.session_id,
            pattern_type=data.pattern_type.value,
            sample_count=data.sample_count,
            confidence_score=data.confidence_score
        )
        return jsonify(pattern.to_dict()), 201

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except Exception as e:
        logger.error(f"Error creating behavioral pattern: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to create behavioral pattern'}), 500


@signals_bp.route('/behavioral-patterns', methods=['GET'])
def list_behavioral_patterns():
    try:
        patterns = signal_service.list_behavioral_patterns(
            user_id=request.args.get('userId'),
            limit=query_limit()
        )
        return jsonify([p.to_dict() for p in patterns]), 200
    except Exception as e:
        logger.error(f"Error fetching behavioral patterns: {e}")
        return jsonify({'error': 'Failed to fetch behavioral patterns'}), 500


@signals_bp.route('/devices', methods=['POST'])
def upsert_device():
    """Register a device fingerprint or count another sighting"""
    try:
        data = parse_body(DeviceProfileIn)

        device = signal_service.upsert_device(
            data.fingerprint,
            trust_score=data.trust_score,
            user_id=data.user_id,
            user_agent=data.user_agent,
            platform=data.platform,
            screen_resolution=data.screen_resolution,
            timezone=data.timezone
        )
        summary = signal_service.device_summary(device)
        return jsonify(summary), 201 if summary['isNew'] else 200

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except DeviceOwnershipConflict:
        db.session.rollback()
        return jsonify({'error': 'Device is registered to another user'}), 409
    except Exception as e:
        logger.error(f"Error upserting device profile: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to save device profile'}), 500


@signals_bp.route('/tls-fingerprints', methods=['POST'])
def upsert_tls_fingerprint():
    try:
        data = parse_body(TlsFingerprintIn)

        fingerprint = signal_service.upsert_tls_fingerprint(
            data.ja3_hash,
            ja4_hash=data.ja4_hash,
            user_agent=data.user_agent,
            trust_score=data.trust_score
        )
        return jsonify(fingerprint.to_dict()), 200

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except Exception as e:
        logger.error(f"Error saving TLS fingerprint: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to save TLS fingerprint'}), 500
