"""Per-account lockout, kept on the Account row.

OPEN    -> LOCKED  when failed_login_attempts reaches MAX_LOGIN_ATTEMPTS
LOCKED  -> OPEN    lazily, on the first lock_status() call at or after locked_until

Failures are never recorded while LOCKED: callers check lock_status() first,
so further attempts neither increment the counter nor extend the lock.
"""
import logging
import math
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import or_, update

from models import db
from models.account import Account

logger = logging.getLogger(__name__)


def lock_status(account: Account) -> tuple[bool, int]:
    """
    Returns (locked, seconds_remaining)
    """
    if not account.locked_until:
        return False, 0

    now = datetime.utcnow()
    if account.locked_until <= now:
        # lock window elapsed: back to OPEN with a clean counter
        reset_attempts(account)
        return False, 0

    seconds = int(math.ceil((account.locked_until - now).total_seconds()))
    return True, max(seconds, 1)


def register_failure(account: Account) -> tuple[int, bool]:
    """
    Atomically increments the failure counter. Returns (fail_count, locked_now)
    """
    now = datetime.utcnow()
    max_attempts = current_app.config.get("MAX_LOGIN_ATTEMPTS", 5)
    lock_minutes = current_app.config.get("LOCKOUT_MINUTES", 30)

    # single UPDATE so concurrent failures cannot under-count
    db.session.execute(
        update(Account)
        .where(Account.id == account.id)
        .values(failed_login_attempts=Account.failed_login_attempts + 1)
        .execution_options(synchronize_session=False)
    )
    locked = db.session.execute(
        update(Account)
        .where(
            Account.id == account.id,
            Account.failed_login_attempts >= max_attempts,
            or_(Account.locked_until.is_(None), Account.locked_until <= now),
        )
        .values(locked_until=now + timedelta(minutes=lock_minutes))
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.refresh(account)

    locked_now = locked.rowcount > 0
    if locked_now:
        logger.warning("account %s locked after %s failed attempts", account.id, account.failed_login_attempts)
    return account.failed_login_attempts, locked_now

def reset_attempts(account: Account):
    """
    Clears failure counter and lock expiry.
    """
    if account.failed_login_attempts == 0 and account.locked_until is None:
        return
    account.failed_login_attempts = 0
    account.locked_until = None
    db.session.commit()
