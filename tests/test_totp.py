import time

import pyotp
import pytest

from security import totp


def _code_outside(secret, steps):
    """A well-formed code matching none of the given 30s steps around now."""
    t = pyotp.TOTP(secret)
    now = time.time()
    taken = {t.at(now + 30 * k) for k in range(-steps, steps + 1)}
    for candidate in range(1000000):
        code = f"{candidate:06d}"
        if code not in taken:
            return code


def test_generate_secret_is_base32(app):
    secret = totp.generate_secret()
    assert len(secret) == 32
    assert set(secret) <= set("ABCDEFGHIJKLMNOPQRSTUVWXYZ234567")
    assert secret != totp.generate_secret()


def test_provisioning_uri_names_issuer_and_account(app):
    uri = totp.provisioning_uri("JBSWY3DPEHPK3PXP", "doc@h.com")
    assert uri.startswith("otpauth://totp/")
    assert "issuer=HMS" in uri
    assert "doc%40h.com" in uri


def test_qr_code_is_png_data_url(app):
    data_url = totp.qr_code_data_url("otpauth://totp/HMS:doc%40h.com?secret=JBSWY3DPEHPK3PXP")
    assert data_url.startswith("data:image/png;base64,")


def test_current_code_verifies(app):
    secret = totp.generate_secret()
    assert totp.verify_code(pyotp.TOTP(secret).now(), secret)


def test_code_within_tolerance_verifies(app):
    secret = totp.generate_secret()
    minute_ago = pyotp.TOTP(secret).at(time.time() - 60)
    assert totp.verify_code(minute_ago, secret, tolerance_steps=2)


def test_code_outside_tolerance_is_rejected(app):
    secret = totp.generate_secret()
    assert not totp.verify_code(_code_outside(secret, 3), secret)


def test_verifier_is_stateless(app):
    secret = totp.generate_secret()
    code = pyotp.TOTP(secret).now()
    assert totp.verify_code(code, secret)
    assert totp.verify_code(code, secret)


@pytest.mark.parametrize("code", [None, "", "12345", "1234567", "abcdef", 123456])
def test_malformed_codes_are_rejected(app, code):
    assert totp.verify_code(code, totp.generate_secret()) is False


def test_undecodable_secret_is_rejected(app):
    assert totp.verify_code("123456", "!!!not-base32!!!") is False
    assert totp.verify_code("123456", None) is False
