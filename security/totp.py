"""TOTP second factor: secret generation, enrollment payloads and code checks.

The verifier is stateless. Replay protection, if wanted, is the caller's job.
"""
import base64
import io
import re

import pyotp
import qrcode
from flask import current_app

DEFAULT_VALID_WINDOW = 2
_CODE_RE = re.compile(r"^\d{6}$")


def generate_secret() -> str:
    return pyotp.random_base32()


def provisioning_uri(secret: str, account_email: str) -> str:
    issuer = current_app.config.get("TOTP_ISSUER", "HMS")
    return pyotp.TOTP(secret).provisioning_uri(name=account_email, issuer_name=issuer)


def qr_code_data_url(uri: str) -> str:
    img = qrcode.make(uri)
    buf = io.BytesIO()
    img.save(buf)
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def is_well_formed(code) -> bool:
    return isinstance(code, str) and bool(_CODE_RE.match(code))


def verify_code(code: str, secret: str, tolerance_steps: int = None) -> bool:
    """True if `code` matches the current 30s step or one within ±tolerance_steps."""
    if not secret or not is_well_formed(code):
        return False
    if tolerance_steps is None:
        tolerance_steps = int(current_app.config.get("TOTP_VALID_WINDOW", DEFAULT_VALID_WINDOW))
    try:
        return pyotp.TOTP(secret).verify(code, valid_window=tolerance_steps)
    except (ValueError, TypeError):
        # undecodable base32 secret
        return False
