# riskauth/services/signal_service.py
"""
Ingestion of device, TLS and behavioral signals
"""
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any

from flask import current_app

from riskauth import db
from riskauth.core.behavior import BehavioralSample
from riskauth.models.database import BehavioralPattern, DeviceProfile, TlsFingerprint
from riskauth.services.notification_service import NotificationService, ActivityType

logger = logging.getLogger(__name__)


class DeviceOwnershipConflict(ValueError):
    """Fingerprint already belongs to a different user"""


class SignalService:
    """Stores collected signals for later scoring"""

    def __init__(self):
        self.notification_service = NotificationService()

    def record_behavioral_pattern(self, sample: BehavioralSample,
                                  user_id: Optional[str] = None,
                                  session_id: Optional[str] = None,
                                  pattern_type: str = 'mixed',
                                  sample_count: int = 0,
                                  confidence_score: Optional[float] = None) -> BehavioralPattern:
        pattern = BehavioralPattern(
            user_id=user_id,
            session_id=session_id,
            pattern_type=pattern_type,
            sample_count=sample_count,
            confidence_score=confidence_score,
            **asdict(sample)
        )
        db.session.add(pattern)
        db.session.commit()

        cache = current_app.extensions['risk_engine'].baseline_cache
        if cache is not None and user_id:
            cache.invalidate(user_id)

        logger.info(f"Behavioral pattern recorded for user {user_id} "
                    f"({len(sample.present_features())} features)")
        self.notification_service.send_activity(
            ActivityType.PATTERN_RECORDED,
            f"Behavioral pattern captured ({pattern_type})",
            user_id=user_id,
            confidence_level="high" if confidence_score and confidence_score >= 0.7 else "medium"
        )
        return pattern

    def list_behavioral_patterns(self, user_id: Optional[str] = None, limit: int = 100) -> List[BehavioralPattern]:
        query = BehavioralPattern.query
        if user_id:
            query = query.filter(BehavioralPattern.user_id == user_id)
        return query.order_by(BehavioralPattern.created_at.desc()).limit(limit).all()

    def upsert_device(self, fingerprint: str, trust_score: float = 0.5,
                      user_id: Optional[str] = None, **attributes: Any) -> DeviceProfile:
        """Create the device or bump its familiarity.

        Trust never decreases through re-observation. An unowned device is
        linked to the first user reporting it; a device owned by someone
        else is left untouched and DeviceOwnershipConflict is raised.
        """
        device = DeviceProfile.query.filter_by(fingerprint=fingerprint).first()

        if device is None:
            device = DeviceProfile(fingerprint=fingerprint, user_id=user_id, seen_count=1, trust_score=trust_score)
            db.session.add(device)
            logger.info(f"New device profile {fingerprint[:12]} for user {user_id}")
        elif user_id and device.user_id and device.user_id != user_id:
            logger.warning(f"User {user_id} reported device {fingerprint[:12]} owned by another user")
            raise DeviceOwnershipConflict(fingerprint)
        else:
            if user_id and not device.user_id:
                device.user_id = user_id
            device.seen_count = (device.seen_count or 0) + 1
            device.trust_score = max(device.trust_score or 0.0, trust_score)
            device.last_seen = datetime.now(timezone.utc)

        for name, value in attributes.items():
            if value is not None:
                setattr(device, name, value)

        db.session.commit()
        self.notification_service.send_activity(
            ActivityType.DEVICE_SEEN,
            "New device registered" if device.seen_count == 1 else f"Known device recognized (seen {device.seen_count} times)",
            user_id=device.user_id,
            risk_score=device.trust_score,
            confidence_level="high" if device.trust_score >= 0.7 else "medium"
        )
        return device

    def upsert_tls_fingerprint(self, ja3_hash: str, ja4_hash: Optional[str] = None,
                               user_agent: Optional[str] = None,
                               trust_score: float = 0.5) -> TlsFingerprint:
        fingerprint = TlsFingerprint.query.filter_by(ja3_hash=ja3_hash).first()

        if fingerprint is None:
            fingerprint = TlsFingerprint(ja3_hash=ja3_hash, seen_count=1, trust_score=trust_score)
            db.session.add(fingerprint)
        else:
            fingerprint.seen_count = (fingerprint.seen_count or 0) + 1
            fingerprint.trust_score = max(fingerprint.trust_score or 0.0, trust_score)

        if ja4_hash:
            fingerprint.ja4_hash = ja4_hash
        if user_agent:
            fingerprint.user_agent = user_agent

        db.session.commit()
        return fingerprint

    def device_summary(self, device: DeviceProfile) -> Dict[str, Any]:
        return {
            'isNew': device.seen_count == 1,
            'device': device.to_dict()
        }
