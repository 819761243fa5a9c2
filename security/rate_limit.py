import logging

from flask import current_app

from security.store import StoreUnavailableError, get_store
from utils.request_meta import client_ip

logger = logging.getLogger(__name__)


def allow(key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    Fixed window per key; the increment and the count come back from one store call.
    Fails open when the store is down.
    """
    if limit <= 0:
        return True, 0

    try:
        count, reset_in = get_store().hit(key, window_seconds)
    except StoreUnavailableError as exc:
        logger.warning("rate limit store unavailable, allowing %s: %s", key, exc)
        return True, 0

    if count > limit:
        return False, max(reset_in, 1)

    return True, 0


def check_auth_rate() -> tuple[bool, int]:
    """Anonymous auth endpoints: keyed by source IP, independent of the account."""
    return allow(
        f"auth:{client_ip()}",
        current_app.config.get("AUTH_RATE_MAX_REQUESTS", 10),
        current_app.config.get("AUTH_RATE_WINDOW_SECONDS", 900),
    )


def check_api_rate(account_id: int) -> tuple[bool, int]:
    """Authenticated endpoints: keyed by account id."""
    return allow(
        f"api:{account_id}",
        current_app.config.get("API_RATE_MAX_REQUESTS", 100),
        current_app.config.get("API_RATE_WINDOW_SECONDS", 900),
    )
