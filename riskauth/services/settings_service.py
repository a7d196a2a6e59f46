# riskauth/services/settings_service.py
"""
Admin-tunable scoring settings and the decision policy derived from them
"""
import logging
from typing import Dict, List, Optional, Any, Mapping

from flask import current_app

from riskauth import db
from riskauth.core.policy import DecisionPolicy, ScoringWeights, validate_weights
from riskauth.models.database import AdminSetting
from riskauth.services.audit_service import AuditService

logger = logging.getLogger(__name__)

SETTING_CATEGORIES = {
    'silentAuthThreshold': 'thresholds',
    'allowThreshold': 'thresholds',
    'stepUpThreshold': 'thresholds',
    'stepUpMethod': 'thresholds',
    'alertThreshold': 'alerts',
    'deviceWeight': 'weights',
    'tlsWeight': 'weights',
    'behavioralWeight': 'weights',
}


def policy_from_config(config: Mapping[str, Any]) -> DecisionPolicy:
    """Deployment defaults before any admin overrides"""
    return DecisionPolicy(
        weights=ScoringWeights(
            device=config['RISK_DEVICE_WEIGHT'],
            tls=config['RISK_TLS_WEIGHT'],
            behavioral=config['RISK_BEHAVIORAL_WEIGHT']
        ),
        allow_threshold=config['RISK_ALLOW_THRESHOLD'],
        step_up_threshold=config['RISK_STEP_UP_THRESHOLD'],
        silent_auth_threshold=config['SILENT_AUTH_THRESHOLD'],
        alert_threshold=config['ALERT_THRESHOLD'],
        step_up_method=config['STEP_UP_METHOD']
    )


class SettingsService:
    """Stores admin settings and resolves the active decision policy"""

    def __init__(self):
        self.audit_service = AuditService()

    def list_settings(self) -> List[AdminSetting]:
        return AdminSetting.query.order_by(AdminSetting.key).all()

    def get_setting(self, key: str) -> Optional[AdminSetting]:
        return AdminSetting.query.filter_by(key=key).first()

    def as_dict(self) -> Dict[str, Any]:
        return {s.key: s.value_data for s in self.list_settings()}

    def current_policy(self) -> DecisionPolicy:
        return DecisionPolicy.from_settings(self.as_dict(), default=policy_from_config(current_app.config))

    def update_setting(self, key: str, value: Any, **kwargs) -> AdminSetting:
        return self.update_settings({key: value}, **kwargs)[0]

    def update_settings(self, values: Mapping[str, Any],
                        actor_id: Optional[str] = None,
                        description: Optional[str] = None,
                        category: Optional[str] = None,
                        ip_address: Optional[str] = None,
                        user_agent: Optional[str] = None) -> List[AdminSetting]:
        """Upsert settings in one transaction, auditing each change.

        Raises ValueError for unusable values; WeightConfigurationError when
        strict weight validation is enabled and the resulting weights do not
        sum to 1.
        """
        merged = {**self.as_dict(), **values}
        policy = DecisionPolicy.from_settings(merged, default=policy_from_config(current_app.config))

        if any(key in DecisionPolicy.WEIGHT_KEYS for key in values):
            validate_weights(policy.weights, strict=current_app.config['STRICT_WEIGHT_VALIDATION'])

        updated = []
        for key, value in values.items():
            setting = self.get_setting(key)
            old_value = setting.value_data if setting else None

            if setting is None:
                setting = AdminSetting(key=key, category=category or SETTING_CATEGORIES.get(key))
                db.session.add(setting)
            setting.value_data = value
            if description is not None:
                setting.description = description
            if category is not None:
                setting.category = category

            self.audit_service.record(
                event_type='threshold_change',
                action='update',
                actor_id=actor_id,
                actor_type='admin',
                target_id=key,
                target_type='admin_setting',
                old_value={'key': key, 'value': old_value},
                new_value={'key': key, 'value': value},
                ip_address=ip_address,
                user_agent=user_agent
            )
            updated.append(setting)

        db.session.commit()
        logger.info(f"Admin settings updated by {actor_id}: {', '.join(values)}")
        return updated
