# riskauth/services/audit_service.py
"""
Audit trail for administrative and security-relevant events
"""
import logging
from typing import List, Optional, Any

from sqlalchemy import desc

from riskauth import db
from riskauth.models.database import AuditLog

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000


class AuditService:
    """Writes and queries audit log entries.

    ``record`` adds the entry to the current session without committing so
    it lands in the same transaction as the change it describes.
    """

    def record(self, event_type: str, action: str,
               actor_id: Optional[str] = None,
               actor_type: str = 'system',
               target_id: Optional[str] = None,
               target_type: Optional[str] = None,
               old_value: Any = None,
               new_value: Any = None,
               ip_address: Optional[str] = None,
               user_agent: Optional[str] = None) -> AuditLog:
        entry = AuditLog(
            event_type=event_type,
            action=action,
            actor_id=actor_id,
            actor_type=actor_type,
            target_id=target_id,
            target_type=target_type,
            ip_address=ip_address,
            user_agent=user_agent
        )
        entry.old_value_data = old_value
        entry.new_value_data = new_value
        db.session.add(entry)

        logger.info(f"Audit {event_type}/{action} by {actor_type}:{actor_id} on {target_type}:{target_id}")
        return entry

    def query(self, actor_id: Optional[str] = None,
              target_id: Optional[str] = None,
              event_type: Optional[str] = None,
              limit: Optional[int] = None) -> List[AuditLog]:
        query = AuditLog.query
        if actor_id:
            query = query.filter(AuditLog.actor_id == actor_id)
        if target_id:
            query = query.filter(AuditLog.target_id == target_id)
        if event_type:
            query = query.filter(AuditLog.event_type == event_type)

        limit = min(max(1, limit or DEFAULT_QUERY_LIMIT), MAX_QUERY_LIMIT)
        return query.order_by(desc(AuditLog.created_at)).limit(limit).all()
