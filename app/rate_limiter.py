"""
Persisted token bucket shared by every worker that talks to a provider.

Each ``attempt()`` is a read-modify-write of one ``rate_limits`` row. Two
things keep it atomic:

- the row is read ``FOR UPDATE`` so concurrent workers on a row-locking
  database (PostgreSQL) serialize on it;
- a per-provider ``threading.Lock`` serializes threads of one process, which
  is all SQLite needs since it locks the whole database on write.

``attempt()`` commits the session. Call it before staging any other writes.
"""
import math
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import structlog
from sqlalchemy.exc import IntegrityError

from db import db
from metrics import rate_limit_denials_total
from models.rate_limit import RateLimit
from utils import now_utc, ensure_utc

logger = structlog.get_logger("rate_limiter")

_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _provider_lock(provider: str) -> threading.Lock:
    with _locks_guard:
        lock = _locks.get(provider)
        if lock is None:
            lock = _locks[provider] = threading.Lock()
        return lock


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


class TokenBucketRateLimiter:
    def __init__(self, clock: Optional[Callable] = None):
        self.clock = clock or now_utc

    def attempt(self, provider: str, max_rps: float, burst: int) -> RateLimitDecision:
        """
        Take one token for ``provider``.

        Refill is ``elapsed * max_rps`` capped at ``burst``. A missing row
        starts full. Denials report ``retry_after`` in whole seconds.
        """
        max_rps = float(max_rps) if max_rps and max_rps > 0 else 0.001
        burst = max(1, int(burst or 1))

        with _provider_lock(provider):
            try:
                return self._attempt_once(provider, max_rps, burst)
            except IntegrityError:
                # another worker inserted the row between our read and insert
                db.session.rollback()
                return self._attempt_once(provider, max_rps, burst)

    def _attempt_once(self, provider, max_rps, burst):
        now = ensure_utc(self.clock())
        row = db.session.query(RateLimit).filter(RateLimit.provider == provider).with_for_update().first()

        tokens = float(row.tokens) if row is not None else float(burst)
        last_refill = ensure_utc(row.last_refill_at) if row is not None and row.last_refill_at else now

        elapsed = max(0.0, (now - last_refill).total_seconds())
        refilled = min(float(burst), tokens + elapsed * max_rps)

        if refilled >= 1:
            decision = RateLimitDecision(allowed=True, retry_after=0)
            tokens = refilled - 1
        else:
            retry_after = int(math.ceil((1 - refilled) / max(max_rps, 0.001)))
            decision = RateLimitDecision(allowed=False, retry_after=max(1, retry_after))
            tokens = refilled

        if row is None:
            row = RateLimit(provider=provider)
            db.session.add(row)
        row.tokens = min(float(burst), tokens)
        row.last_refill_at = now

        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        if not decision.allowed:
            rate_limit_denials_total.labels(provider=provider).inc()
            logger.info("rate_limit.denied", provider=provider, retry_after=decision.retry_after)

        return decision

    def peek(self, provider: str) -> Optional[float]:
        row = RateLimit.query.filter_by(provider=provider).first()
        return float(row.tokens) if row else None
