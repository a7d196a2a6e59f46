# riskauth/services/storage_service.py
"""
SQLAlchemy-backed history reads for the composite risk engine
"""
import logging
from typing import List, Optional, Any

from sqlalchemy import or_

from riskauth.core.behavior import BehavioralSample
from riskauth.core.risk_engine import RiskDataSource, DeviceHistory, TlsFingerprintRecord
from riskauth.models.database import BehavioralPattern, DeviceProfile, TlsFingerprint

logger = logging.getLogger(__name__)


class SqlRiskDataSource(RiskDataSource):
    """Reads run on engine worker threads, so each one pushes its own
    application context and returns plain values rather than ORM rows.
    """

    def __init__(self, app):
        self.app = app

    def get_behavioral_samples_for_user(self, user_id: Any) -> List[BehavioralSample]:
        with self.app.app_context():
            patterns = BehavioralPattern.query.filter_by(user_id=user_id)\
                .order_by(BehavioralPattern.created_at).all()
            samples = [p.to_sample() for p in patterns]
        logger.debug(f"Loaded {len(samples)} behavioral samples for user {user_id}")
        return samples

    def get_device_history(self, user_id: Any, device_id: Any) -> Optional[DeviceHistory]:
        with self.app.app_context():
            device = DeviceProfile.query.filter(
                DeviceProfile.user_id == user_id,
                or_(DeviceProfile.id == device_id, DeviceProfile.fingerprint == device_id)
            ).first()
            return device.to_history() if device else None

    def get_tls_fingerprint_by_hash(self, fingerprint_hash: str) -> Optional[TlsFingerprintRecord]:
        with self.app.app_context():
            fingerprint = TlsFingerprint.query.filter(
                or_(TlsFingerprint.ja3_hash == fingerprint_hash, TlsFingerprint.ja4_hash == fingerprint_hash)
            ).first()
            return fingerprint.to_record() if fingerprint else None
