"""Shared store for cross-request auth state: rate limit windows and the token denylist.

Counters must be shared by every worker process, so nothing here keeps state
in memory. Two backends:

* ``DatabaseStore`` keeps rows in ``rate_limit_counters`` / ``revoked_tokens``
  and relies on ``UPDATE ... SET count = count + 1`` for atomic increments.
* ``RedisStore`` uses ``SET NX EX`` + ``INCR`` inside MULTI/EXEC and keys with
  native TTLs, so denylist entries prune themselves.

Backend failures surface as ``StoreUnavailableError``; callers decide whether
to fail open or closed.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Tuple

import redis
from flask import current_app
from redis.exceptions import RedisError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.rate_limit_counter import RateLimitCounter
from models.revoked_token import RevokedToken

logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    pass


def _seconds_until(moment: datetime, now: datetime) -> int:
    return max(int(math.ceil((moment - now).total_seconds())), 0)


class DatabaseStore:
    _INSERT_RETRIES = 3

    def hit(self, key: str, window_seconds: int) -> Tuple[int, int]:
        """Count one request against `key`. Returns (count in window, seconds until reset)."""
        try:
            for _ in range(self._INSERT_RETRIES):
                now = datetime.utcnow()
                try:
                    count, expires_at = self._bump(key, now, window_seconds)
                    db.session.commit()
                    return count, _seconds_until(expires_at, now)
                except IntegrityError:
                    # another worker inserted the first row for this key; bump theirs
                    db.session.rollback()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailableError(str(exc)) from exc
        raise StoreUnavailableError(f"could not record hit for {key}")

    def _bump(self, key, now, window_seconds):
        table = RateLimitCounter
        result = db.session.execute(
            update(table)
            .where(table.key == key, table.window_expires_at > now)
            .values(count=table.count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # expired window: restart it
            result = db.session.execute(
                update(table)
                .where(table.key == key, table.window_expires_at <= now)
                .values(count=1, window_expires_at=now + timedelta(seconds=window_seconds))
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 0:
            db.session.add(RateLimitCounter(
                key=key, count=1, window_expires_at=now + timedelta(seconds=window_seconds),
            ))
            db.session.flush()

        # read inside the same transaction; our row lock makes this our own increment
        row = db.session.execute(
            select(table.count, table.window_expires_at).where(table.key == key)
        ).one()
        return row.count, row.window_expires_at

    def revoke(self, jti: str, ttl_seconds: int) -> None:
        now = datetime.utcnow()
        try:
            # self-prune on write so the denylist never grows past live tokens
            db.session.execute(delete(RevokedToken).where(RevokedToken.expires_at <= now))
            exists = db.session.execute(
                select(RevokedToken.id).where(RevokedToken.jti == jti)
            ).first()
            if exists is None:
                db.session.add(RevokedToken(jti=jti, expires_at=now + timedelta(seconds=ttl_seconds)))
            db.session.commit()
        except IntegrityError:
            # concurrent logout of the same token
            db.session.rollback()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailableError(str(exc)) from exc

    def is_revoked(self, jti: str) -> bool:
        try:
            row = db.session.execute(
                select(RevokedToken.id).where(
                    RevokedToken.jti == jti,
                    RevokedToken.expires_at > datetime.utcnow(),
                )
            ).first()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailableError(str(exc)) from exc
        return row is not None

    def prune(self) -> int:
        """Delete expired counters and denylist rows. Returns number of rows removed."""
        now = datetime.utcnow()
        removed = db.session.execute(
            delete(RateLimitCounter).where(RateLimitCounter.window_expires_at <= now)
        ).rowcount
        removed += db.session.execute(
            delete(RevokedToken).where(RevokedToken.expires_at <= now)
        ).rowcount
        db.session.commit()
        return removed


class RedisStore:
    RATE_PREFIX = "hms:rate:"
    DENYLIST_PREFIX = "hms:denylist:"

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 2.0):
        return cls(redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        ))

    def hit(self, key: str, window_seconds: int) -> Tuple[int, int]:
        rkey = self.RATE_PREFIX + key
        try:
            pipe = self.client.pipeline(transaction=True)
            # NX: only the first hit of a window sets the expiry; INCR keeps the TTL
            pipe.set(rkey, 0, ex=window_seconds, nx=True)
            pipe.incr(rkey)
            pipe.ttl(rkey)
            _, count, ttl = pipe.execute()
        except RedisError as exc:
            raise StoreUnavailableError(str(exc)) from exc
        return int(count), max(int(ttl), 0)

    def revoke(self, jti: str, ttl_seconds: int) -> None:
        try:
            self.client.set(self.DENYLIST_PREFIX + jti, "1", ex=max(int(ttl_seconds), 1))
        except RedisError as exc:
            raise StoreUnavailableError(str(exc)) from exc

    def is_revoked(self, jti: str) -> bool:
        try:
            return bool(self.client.exists(self.DENYLIST_PREFIX + jti))
        except RedisError as exc:
            raise StoreUnavailableError(str(exc)) from exc

    def prune(self) -> int:
        # keys expire on their own
        return 0


def init_store(app):
    url = app.config.get("REDIS_URL")
    if url:
        store = RedisStore.from_url(url)
        logger.info("auth store: redis")
    else:
        store = DatabaseStore()
        logger.info("auth store: database")
    app.extensions["auth_store"] = store
    return store


def get_store():
    return current_app.extensions["auth_store"]
