import re

from flask import request

from utils.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def normalize_email(value) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def is_valid_email(email: str) -> bool:
    return isinstance(email, str) and len(email) <= 100 and bool(_EMAIL_RE.match(email))


def field_error(field: str, message: str) -> dict:
    return {"field": field, "message": message}


def check_length(data: dict, field: str, min_len: int, max_len: int, label: str, errors: list):
    value = data.get(field)
    if not isinstance(value, str) or not (min_len <= len(value.strip()) <= max_len):
        errors.append(field_error(field, f"{label} must be {min_len}-{max_len} characters"))


def raise_if_errors(errors: list):
    if errors:
        raise ValidationError(errors=errors)


def check_optional_length(data: dict, field: str, max_len: int, label: str, errors: list):
    value = data.get(field)
    if value is None or value == "":
        return
    if not isinstance(value, str) or len(value.strip()) > max_len:
        errors.append(field_error(field, f"{label} must be a string of at most {max_len} characters"))
