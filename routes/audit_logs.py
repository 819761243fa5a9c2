import json

from flask import Blueprint, request

from models.account import Role
from models.audit_log import AuditLog
from security.rbac import require_roles
from utils.auth_context import login_required
from utils.responses import success

audit_bp = Blueprint("audit", __name__, url_prefix="/admin")


def _row_to_dict(r: AuditLog) -> dict:
    return {
        "id": r.id,
        "timestamp": r.timestamp.isoformat() if r.timestamp else None,
        "user_id": r.user_id,
        "action": r.action,
        "entity": r.entity,
        "entity_id": r.entity_id,
        "ip": r.ip,
        "user_agent": r.user_agent,
        "metadata": json.loads(r.metadata_json) if r.metadata_json else None,
    }


@audit_bp.get("/audit-logs")
@login_required
@require_roles(Role.ADMIN)
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    action = request.args.get("action")
    user_id = request.args.get("user_id", type=int)

    q = AuditLog.query
    if action:
        q = q.filter(AuditLog.action == action)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return success(data=[_row_to_dict(r) for r in rows])
