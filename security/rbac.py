from functools import wraps
from flask import g, request

from models.account import Role
from utils.audit import log_event
from utils.errors import AuthenticationError, ForbiddenError


def is_permitted(role, allowed_roles) -> bool:
    """Pure allow-list check: permit iff the caller's role is one of allowed_roles."""
    role = Role.parse(role)
    if role is None:
        return False
    return role in {Role.parse(r) for r in allowed_roles}


def require_roles(*role_names):
    """
    Usage: @require_roles(Role.ADMIN) below @login_required
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            account = getattr(g, "account", None)
            if account is None:
                raise AuthenticationError()

            if not is_permitted(account.role, role_names):
                log_event(
                    "UNAUTHORIZED_ACCESS_ATTEMPT",
                    user_id=account.id,
                    metadata={
                        "user_role": account.role.value,
                        "required_roles": [Role(r).value for r in role_names],
                        "endpoint": request.path,
                        "method": request.method,
                    },
                )
                raise ForbiddenError()

            return fn(*args, **kwargs)
        return wrapper
    return decorator
