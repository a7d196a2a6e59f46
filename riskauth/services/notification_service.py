# ==========================================
# riskauth/services/notification_service.py
"""
Notification service pushing live scoring activity to dashboard clients
"""
import logging
import uuid
from typing import Dict, Optional, Any
from datetime import datetime, timezone
from enum import Enum

from riskauth import socketio

logger = logging.getLogger(__name__)

DASHBOARD_ROOM = 'dashboard'


class NotificationType(Enum):
    CONFIDENCE_UPDATE = "confidence_update"
    ACTIVITY = "activity"
    ANOMALY_ALERT = "anomaly_alert"


class ActivityType(Enum):
    RISK_CALCULATED = "risk_calculated"
    DEVICE_SEEN = "device_seen"
    PATTERN_RECORDED = "pattern_recorded"
    THRESHOLD_CHANGED = "threshold_changed"


def confidence_level_for(score: Optional[float]) -> str:
    """Dashboard confidence band for an overall score"""
    if score is not None and score >= 0.7:
        return 'high'
    if score is not None and score >= 0.4:
        return 'medium'
    return 'low'


class NotificationService:
    """Broadcasts to every client in the dashboard room.

    Delivery is best effort: a failed emit is logged and reported as False,
    it never fails the request that triggered it.
    """

    def __init__(self, room: str = DASHBOARD_ROOM):
        self.room = room

    def send_confidence_update(self, payload: Dict[str, Any]) -> bool:
        """Gauge update ``{type, score, userId}``"""
        return self._emit(NotificationType.CONFIDENCE_UPDATE.value, payload)

    def send_activity(self, activity_type: ActivityType, message: str,
                      user_id: Optional[str] = None,
                      risk_score: Optional[float] = None,
                      confidence_level: Optional[str] = None) -> bool:
        """Live activity feed item"""
        activity = {
            'id': str(uuid.uuid4()),
            'type': activity_type.value,
            'userId': user_id,
            'riskScore': risk_score,
            'confidenceLevel': confidence_level or confidence_level_for(risk_score),
            'message': message,
            'timestamp': datetime.now(timezone.utc).isoformat()
        }
        return self._emit(NotificationType.ACTIVITY.value, {
            'type': NotificationType.ACTIVITY.value,
            'activity': activity
        })

    def send_alert(self, alert: Dict[str, Any]) -> bool:
        """Security alert raised during scoring"""
        return self._emit(NotificationType.ANOMALY_ALERT.value, {
            'type': NotificationType.ANOMALY_ALERT.value,
            'alert': alert
        })

    def _emit(self, event: str, payload: Dict[str, Any]) -> bool:
        try:
            socketio.emit(event, payload, to=self.room)
            logger.debug(f"Broadcast {event} to room {self.room}")
            return True
        except Exception as e:
            logger.error(f"Failed to broadcast {event}: {e}")
            return False
