from datetime import datetime, timedelta, timezone

import jwt
import pytest

from models.account import Role
from security.tokens import (
    RejectReason,
    TokenRejected,
    issue_token,
    revoke_token,
    validate_token,
)


def _reason(token):
    with pytest.raises(TokenRejected) as exc_info:
        validate_token(token)
    return exc_info.value.reason


def test_issued_token_validates(app):
    token = issue_token(42, Role.NURSE)
    claims = validate_token(token)

    assert claims.account_id == 42
    assert claims.role is Role.NURSE
    assert claims.jti


def test_default_lifetime_is_a_day(app):
    claims = validate_token(issue_token(1, Role.DOCTOR))
    remaining = claims.expires_at - datetime.now(timezone.utc)
    assert timedelta(hours=23, minutes=59) < remaining <= timedelta(hours=24)


def test_each_token_has_its_own_id(app):
    assert validate_token(issue_token(1, Role.DOCTOR)).jti != validate_token(issue_token(1, Role.DOCTOR)).jti


def test_expired_token_is_rejected(app):
    assert _reason(issue_token(1, Role.DOCTOR, lifetime_seconds=-10)) is RejectReason.EXPIRED


def test_foreign_signature_is_rejected(app):
    now = datetime.now(timezone.utc)
    forged = jwt.encode(
        {"sub": "1", "role": "admin", "iat": now, "exp": now + timedelta(hours=1), "jti": "x"},
        "someone-elses-signing-secret-of-decent-length",
        algorithm="HS256",
    )
    assert _reason(forged) is RejectReason.SIGNATURE


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_garbage_is_malformed(app, token):
    assert _reason(token) is RejectReason.MALFORMED


def test_unknown_role_is_malformed(app):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "1", "role": "superuser", "iat": now, "exp": now + timedelta(hours=1), "jti": "x"},
        app.config["JWT_SECRET"],
        algorithm="HS256",
    )
    assert _reason(token) is RejectReason.MALFORMED


def test_missing_jti_is_malformed(app):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "1", "role": "doctor", "iat": now, "exp": now + timedelta(hours=1)},
        app.config["JWT_SECRET"],
        algorithm="HS256",
    )
    assert _reason(token) is RejectReason.MALFORMED


def test_revoked_token_is_rejected_immediately_and_forever(app):
    token = issue_token(7, Role.ADMIN)
    assert revoke_token(token) is True

    for _ in range(3):
        assert _reason(token) is RejectReason.REVOKED


def test_revoking_one_token_leaves_others_valid(app):
    first = issue_token(7, Role.ADMIN)
    second = issue_token(7, Role.ADMIN)
    revoke_token(first)

    assert validate_token(second).account_id == 7


def test_revoking_dead_token_is_a_no_op(app):
    assert revoke_token(issue_token(1, Role.DOCTOR, lifetime_seconds=-10)) is False
    assert revoke_token("not-a-jwt") is False
