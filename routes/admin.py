from flask import Blueprint, g

from models import db
from models.account import Account, Role
from security.rbac import require_roles
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import NotFoundError, ValidationError
from utils.responses import success
from utils.validators import field_error, json_body

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.get("/accounts")
@login_required
@require_roles(Role.ADMIN)
def list_accounts():
    accounts = Account.query.order_by(Account.id).all()
    return success(data=[a.to_public_dict() for a in accounts])


@admin_bp.patch("/accounts/<int:account_id>/status")
@login_required
@require_roles(Role.ADMIN)
def set_account_status(account_id):
    is_active = json_body().get("isActive")
    if not isinstance(is_active, bool):
        raise ValidationError(errors=[field_error("isActive", "isActive must be a boolean")])

    account = db.session.get(Account, account_id)
    if account is None:
        raise NotFoundError("Account not found")
    if account.id == g.account.id and not is_active:
        raise ValidationError("You cannot deactivate your own account")

    # accounts are never deleted, only switched off
    account.is_active = is_active
    db.session.commit()

    log_event(
        "ACCOUNT_STATUS_CHANGED",
        user_id=g.account.id,
        entity="account",
        entity_id=account.id,
        metadata={"is_active": is_active},
    )
    return success(data=account.to_public_dict(), message="Account status updated")
