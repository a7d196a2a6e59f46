# riskauth/api/alerts.py
"""
Anomaly alert and audit log endpoints
"""
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
import logging
from sqlalchemy import desc

from riskauth import db
from riskauth.models.database import AnomalyAlert
from riskauth.models.schemas import ResolveAlertRequest
from riskauth.services.audit_service import AuditService
from riskauth.utils.helpers import parse_body, query_flag, query_limit, error_details, audit_context, \
    RequestValidationError

logger = logging.getLogger(__name__)
alerts_bp = Blueprint('alerts', __name__)
audit_bp = Blueprint('audit', __name__)
audit_service = AuditService()


@alerts_bp.route('', methods=['GET'])
def list_alerts():
    try:
        query = AnomalyAlert.query
        if query_flag('unresolved'):
            query = query.filter(AnomalyAlert.resolved.is_(False))
        if request.args.get('userId'):
            query = query.filter(AnomalyAlert.user_id == request.args['userId'])

        alerts = query.order_by(desc(AnomalyAlert.created_at)).limit(query_limit()).all()
        return jsonify([a.to_dict() for a in alerts]), 200
    except Exception as e:
        logger.error(f"Error fetching anomaly alerts: {e}")
        return jsonify({'error': 'Failed to fetch anomaly alerts'}), 500


@alerts_bp.route('/<alert_id>/resolve', methods=['PATCH'])
@jwt_required()
def resolve_alert(alert_id):
    try:
        data = parse_body(ResolveAlertRequest)

        alert = db.session.get(AnomalyAlert, alert_id)
        if not alert:
            return jsonify({'error': 'Alert not found'}), 404

        actor_id = get_jwt_identity()
        alert.resolve(data.resolution, data.resolved_by or actor_id)
        audit_service.record(
            event_type='alert_resolved',
            action='resolve',
            actor_type='admin',
            target_id=alert.id,
            target_type='anomaly_alert',
            new_value={'resolution': data.resolution, 'resolvedBy': alert.resolved_by},
            **audit_context(actor_id)
        )
        db.session.commit()

        logger.info(f"Alert {alert.id} resolved by {alert.resolved_by}")
        return jsonify(alert.to_dict()), 200

    except RequestValidationError as e:
        return jsonify(error_details(e)), 400
    except Exception as e:
        logger.error(f"Error resolving alert {alert_id}: {e}")
        db.session.rollback()
        return jsonify({'error': 'Failed to resolve alert'}), 500


@audit_bp.route('', methods=['GET'])
def list_audit_logs():
    try:
        logs = audit_service.query(
            actor_id=request.args.get('actorId'),
            target_id=request.args.get('targetId'),
            event_type=request.args.get('eventType'),
            limit=query_limit()
        )
        return jsonify([log.to_dict() for log in logs]), 200
    except Exception as e:
        logger.error(f"Error fetching audit logs: {e}")
        return jsonify({'error': 'Failed to fetch audit logs'}), 500
