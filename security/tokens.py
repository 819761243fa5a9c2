"""Bearer tokens: signed JWTs bound to an account id and its role at issue time.

Only revocations are stored server side (see security.store). Every rejection
raises TokenRejected with an internal reason; the HTTP layer reports all of
them as a plain 401.
"""
import enum
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from models.account import Role
from security.store import get_store

logger = logging.getLogger(__name__)


class RejectReason(str, enum.Enum):
    SIGNATURE = "signature"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    REVOKED = "revoked"


class TokenRejected(Exception):
    def __init__(self, reason: RejectReason, detail: str = ""):
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)
        self.reason = reason


@dataclass(frozen=True)
class TokenClaims:
    account_id: int
    role: Role
    jti: str
    expires_at: datetime  # aware, UTC


def _secret() -> str:
    return current_app.config["JWT_SECRET"]


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


def issue_token(account_id: int, role: Role, lifetime_seconds: int = None) -> str:
    if lifetime_seconds is None:
        lifetime_seconds = current_app.config.get("TOKEN_LIFETIME_SECONDS", 24 * 60 * 60)
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(account_id),
        "role": Role(role).value,
        "iat": now,
        "exp": now + timedelta(seconds=lifetime_seconds),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, _secret(), algorithm=_algorithm())


def _decode(token: str) -> dict:
    if not isinstance(token, str) or not token:
        raise TokenRejected(RejectReason.MALFORMED, "empty token")
    try:
        return jwt.decode(
            token,
            _secret(),
            algorithms=[_algorithm()],
            options={"require": ["exp", "iat", "sub", "jti"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenRejected(RejectReason.EXPIRED) from exc
    except jwt.InvalidSignatureError as exc:
        raise TokenRejected(RejectReason.SIGNATURE) from exc
    except jwt.InvalidTokenError as exc:
        raise TokenRejected(RejectReason.MALFORMED, str(exc)) from exc


def _claims_from_payload(payload: dict) -> TokenClaims:
    role = Role.parse(payload.get("role"))
    try:
        account_id = int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise TokenRejected(RejectReason.MALFORMED, "bad subject") from exc
    if role is None:
        raise TokenRejected(RejectReason.MALFORMED, "unknown role")
    return TokenClaims(
        account_id=account_id,
        role=role,
        jti=str(payload["jti"]),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def validate_token(token: str) -> TokenClaims:
    claims = _claims_from_payload(_decode(token))
    if get_store().is_revoked(claims.jti):
        raise TokenRejected(RejectReason.REVOKED)
    return claims


def revoke_token(token: str) -> bool:
    """Denylist the token for the rest of its lifetime. False if it was already dead."""
    try:
        claims = _claims_from_payload(_decode(token))
    except TokenRejected as exc:
        logger.info("not revoking token: %s", exc.reason.value)
        return False

    remaining = (claims.expires_at - datetime.now(timezone.utc)).total_seconds()
    if remaining <= 0:
        return False
    get_store().revoke(claims.jti, int(math.ceil(remaining)))
    return True
