import json
import logging

from models import db
from models.audit_log import AuditLog
from utils.request_meta import client_ip, user_agent

logger = logging.getLogger(__name__)


def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None):
    """Append a security event to the audit trail (one row, committed immediately)."""
    ip = client_ip()
    agent = user_agent()

    row = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        user_agent=agent or None,
        metadata_json=json.dumps(metadata, default=str) if metadata else None
    )
    db.session.add(row)
    db.session.commit()
    logger.info("audit %s user_id=%s ip=%s", action, user_id, ip)
