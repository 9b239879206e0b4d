"""
Rate limiting strategies.

Two limiters share the ``check(identifier) -> RateLimitDecision`` contract:

- ``SlidingWindowLimiter`` counts attempts per identifier in process
  memory using the ``limits`` fixed-window strategy. Used for the admin
  endpoints, where a mistyped code should only cost the rest of the
  current window.
- ``BlockingWindowLimiter`` keeps attempt timestamps in the database and
  blocks an identifier for an extended period once it exceeds the limit.
  Used for the public contact form. Storage errors let the request through.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional

from fastapi import Request
from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio_api import store
from portfolio_api.database import SessionLocal
from portfolio_api.errors import RateLimitError

logger = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


@dataclass
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    retry_after: Optional[int] = None  # seconds
    reason: Optional[str] = None
    remaining: Optional[int] = None


class RateLimiter(ABC):
    """Tracks attempts per identifier and decides whether one more is allowed."""

    @abstractmethod
    def check(self, identifier: str) -> RateLimitDecision:
        """Record an attempt for ``identifier`` and decide."""


class SlidingWindowLimiter(RateLimiter):
    """
    In-memory per-identifier window backed by ``limits``.

    At most ``max_attempts`` are allowed per window; once the window has
    elapsed it restarts with no extra block. Expired entries are dropped by
    the ``limits`` memory storage.
    """

    def __init__(self, max_attempts: int, window_ms: int, namespace: str = "portfolio"):
        self.max_attempts = max_attempts
        self.window_ms = window_ms
        self._item = RateLimitItemPerSecond(max_attempts, max(1, window_ms // 1000), namespace=namespace)
        self._storage = MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)

    def check(self, identifier: str) -> RateLimitDecision:
        allowed = self._strategy.hit(self._item, identifier)
        stats = self._strategy.get_window_stats(self._item, identifier)

        if not allowed:
            retry_after = max(1, math.ceil(stats.reset_time - time.time()))
            logger.warning(f"Rate limit exceeded for {identifier}, retry in {retry_after}s")
            return RateLimitDecision(
                allowed=False,
                retry_after=retry_after,
                reason="Too many requests. Please try again later.",
            )

        return RateLimitDecision(allowed=True, remaining=stats.remaining)

    def reset(self) -> None:
        """Forget all tracked identifiers."""
        self._storage.reset()


class BlockingWindowLimiter(RateLimiter):
    """
    Durable trailing-window limiter with a punitive block.

    Records are keyed ``ratelimit_{purpose}_{identifier}``. Once the pruned
    attempt list reaches ``max_attempts`` the record is blocked for
    ``block_ms``; after the block lapses the identifier starts a fresh window.
    """

    def __init__(
        self,
        purpose: str,
        max_attempts: int,
        window_ms: int,
        block_ms: int,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.purpose = purpose
        self.max_attempts = max_attempts
        self.window_ms = window_ms
        self.block_ms = block_ms
        self.session_factory = session_factory

    def key_for(self, identifier: str) -> str:
        return f"ratelimit_{self.purpose}_{identifier}"

    def check(self, identifier: str, now: Optional[int] = None) -> RateLimitDecision:
        now = store.now_ms() if now is None else now
        key = self.key_for(identifier)

        db = self.session_factory()
        try:
            return self._check(db, key, now)
        except SQLAlchemyError as e:
            logger.error(f"Rate limit check failed for {key}, allowing request: {e}")
            db.rollback()
            return RateLimitDecision(allowed=True)
        finally:
            db.close()

    def _check(self, db: Session, key: str, now: int) -> RateLimitDecision:
        record = store.get_rate_limit_record(db, key)
        attempts: List[int] = []

        if record is not None:
            if record.blocked_until and record.blocked_until > now:
                retry_after = math.ceil((record.blocked_until - now) / 1000)
                minutes_remaining = math.ceil((record.blocked_until - now) / MINUTE_MS)
                logger.warning(f"Blocked identifier attempted request: {key}")
                return RateLimitDecision(
                    allowed=False,
                    retry_after=retry_after,
                    reason=f"Too many requests. Please try again in {minutes_remaining} minutes.",
                )

            if not record.blocked_until:
                attempts = [ts for ts in (record.attempts or []) if ts > now - self.window_ms]

        if len(attempts) >= self.max_attempts:
            blocked_until = now + self.block_ms
            store.put_rate_limit_record(db, key, attempts, blocked_until, now)
            logger.warning(f"Rate limit exceeded, blocking {key} until {blocked_until}")
            return RateLimitDecision(
                allowed=False,
                retry_after=math.ceil(self.block_ms / 1000),
                reason=(
                    "Rate limit exceeded. You have been temporarily blocked for "
                    f"{self.block_ms // MINUTE_MS} minutes."
                ),
            )

        attempts.append(now)
        store.put_rate_limit_record(db, key, attempts, None, now)
        return RateLimitDecision(allowed=True, remaining=self.max_attempts - len(attempts))


def get_client_ip(request: Request) -> str:
    """Resolve the caller's IP, preferring proxy headers over the socket peer."""
    headers = request.headers
    forwarded = headers.get("x-forwarded-for")
    ip = (
        headers.get("cf-connecting-ip")
        or headers.get("x-real-ip")
        or (forwarded.split(",")[0] if forwarded else None)
        or (request.client.host if request.client else None)
        or "unknown"
    )
    return ip.strip()


# Admin endpoints: per-IP in-memory windows
request_code_limiter = SlidingWindowLimiter(max_attempts=3, window_ms=5 * MINUTE_MS)
verify_code_limiter = SlidingWindowLimiter(max_attempts=5, window_ms=5 * MINUTE_MS)
create_blog_limiter = SlidingWindowLimiter(max_attempts=10, window_ms=HOUR_MS)

# Public contact form: durable, 2-hour block on violation
contact_ip_limiter = BlockingWindowLimiter("ip", max_attempts=5, window_ms=HOUR_MS, block_ms=2 * HOUR_MS)
contact_email_limiter = BlockingWindowLimiter("email", max_attempts=3, window_ms=HOUR_MS, block_ms=2 * HOUR_MS)


def get_request_code_limiter() -> RateLimiter:
    return request_code_limiter


def get_verify_code_limiter() -> RateLimiter:
    return verify_code_limiter


def get_create_blog_limiter() -> RateLimiter:
    return create_blog_limiter


def get_contact_ip_limiter() -> RateLimiter:
    return contact_ip_limiter


def get_contact_email_limiter() -> RateLimiter:
    return contact_email_limiter


def enforce_rate_limit(limiter: RateLimiter, identifier: str) -> RateLimitDecision:
    """
    Check ``identifier`` against ``limiter``.

    Raises:
        RateLimitError: If the attempt is not allowed
    """
    decision = limiter.check(identifier)
    if not decision.allowed:
        raise RateLimitError(decision.retry_after or 1, decision.reason or "Too many requests. Please try again later.")
    return decision
