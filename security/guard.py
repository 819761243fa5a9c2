"""Session guard: the login flow and bearer authentication of protected requests.

Login order matters and is part of the contract:

1. IP rate limit, before any account data is touched
2. account lookup (unknown / inactive -> dummy bcrypt check, generic 401)
3. lockout check (LOCKED -> 423, password and 2FA never evaluated)
4. password check (failure counts towards lockout)
5. second factor, if enrolled (missing -> twoFactorRequired, wrong -> counts)
6. reset lockout, stamp last_login, issue token
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import g, request

from models import db
from models.account import Account
from security import lockout, rate_limit, totp
from security.password import burn_verify, verify_password
from security.tokens import TokenRejected, issue_token, validate_token
from utils.audit import log_event
from utils.errors import AuthenticationError, LockedError, RateLimitError
from utils.validators import field_error, is_valid_email, normalize_email, raise_if_errors

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass
class LoginResult:
    account: Account
    token: Optional[str] = None
    two_factor_required: bool = False


def _lock_message(seconds_left: int) -> str:
    minutes = max(int(math.ceil(seconds_left / 60)), 1)
    return f"Account locked. Try again in {minutes} minutes."


def _validate_login_input(email, password, code):
    errors = []
    if not is_valid_email(email):
        errors.append(field_error("email", "Valid email required"))
    if not isinstance(password, str) or len(password) < 6:
        errors.append(field_error("password", "Password must be at least 6 characters"))
    if code is not None and not totp.is_well_formed(code):
        errors.append(field_error("twoFactorToken", "2FA token must be 6 digits"))
    raise_if_errors(errors)


def login(email, password, two_factor_code=None) -> LoginResult:
    allowed, retry_after = rate_limit.check_auth_rate()
    if not allowed:
        log_event("LOGIN_RATE_LIMIT", metadata={"retry_after": retry_after})
        raise RateLimitError(
            "Too many authentication attempts. Please try again later.",
            retry_after_seconds=retry_after,
        )

    email = normalize_email(email)
    if two_factor_code == "":
        two_factor_code = None
    _validate_login_input(email, password, two_factor_code)

    account = Account.query.filter_by(email=email).first()
    if account is None or not account.is_active:
        # same bcrypt cost as a real check, so timing does not reveal which emails exist
        burn_verify(password)
        log_event(
            "LOGIN_FAIL",
            user_id=account.id if account else None,
            metadata={"email": email, "reason": "unknown_or_inactive"},
        )
        raise AuthenticationError(INVALID_CREDENTIALS)

    locked, seconds_left = lockout.lock_status(account)
    if locked:
        log_event("LOGIN_LOCKED", user_id=account.id, metadata={"seconds_left": seconds_left})
        raise LockedError(_lock_message(seconds_left), retry_after_seconds=seconds_left)

    if not verify_password(password, account.password_hash):
        _record_failure(account, "bad_password")
        raise AuthenticationError(INVALID_CREDENTIALS)

    if account.two_factor_enabled:
        if two_factor_code is None:
            return LoginResult(account=account, two_factor_required=True)
        if not totp.verify_code(two_factor_code, account.two_factor_secret):
            _record_failure(account, "bad_2fa_code")
            raise AuthenticationError("Invalid two-factor authentication code")

    lockout.reset_attempts(account)
    account.last_login = datetime.utcnow()
    db.session.commit()

    token = issue_token(account.id, account.role)
    log_event("LOGIN_SUCCESS", user_id=account.id)
    return LoginResult(account=account, token=token)


def _record_failure(account: Account, reason: str):
    fail_count, locked_now = lockout.register_failure(account)
    log_event(
        "LOGIN_FAIL",
        user_id=account.id,
        metadata={"reason": reason, "fail_count": fail_count, "locked_now": locked_now},
    )
    if locked_now:
        log_event("ACCOUNT_LOCKED", user_id=account.id, metadata={"attempts": fail_count})


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def authenticate_request() -> Account:
    """Resolve the bearer token to an active, unlocked account and attach it to flask.g."""
    token = bearer_token()
    if token is None:
        raise AuthenticationError("Access token required")

    try:
        claims = validate_token(token)
    except TokenRejected as exc:
        # reason stays internal; callers only ever see a 401
        logger.info("token rejected on %s: %s", request.path, exc.reason.value)
        raise AuthenticationError("Invalid or expired token") from exc

    account = db.session.get(Account, claims.account_id)
    if account is None or not account.is_active:
        raise AuthenticationError("Invalid or expired token")

    # a token minted before the lock is still refused while the lock lasts
    locked, seconds_left = lockout.lock_status(account)
    if locked:
        raise LockedError("Account is temporarily locked", retry_after_seconds=seconds_left)

    allowed, retry_after = rate_limit.check_api_rate(account.id)
    if not allowed:
        raise RateLimitError(retry_after_seconds=retry_after)

    g.account = account
    g.token = token
    g.token_claims = claims
    return account
