"""
Base class for the retryable ingestion jobs.

A job is built from a small JSON-safe ``context`` dict so it can travel
through Celery. Retry policy (``tries``, ``backoff``, ``retry_until``)
lives on the class; the Celery task wrapper in ``tasks.py`` applies it.
"""
import hashlib
import json
from datetime import timedelta
from typing import Any, Dict, List, Optional

import structlog

from constants import QUEUE_FETCH
from dispatcher import get_dispatcher
from exceptions import RateLimited
from metrics import JobRunTracker
from rate_limiter import TokenBucketRateLimiter
from settings import load_config
from utils import ensure_utc, now_utc

logger = structlog.get_logger("jobs")


class IngestionJob:
    name = "job"
    task_name = ""
    queue = QUEUE_FETCH
    tries = 3
    backoff_schedule: List[int] = [30]
    # hours after the first dispatch; None means tries alone bound the job
    retry_until_hours: Optional[int] = None

    def __init__(
        self,
        context: Optional[Dict[str, Any]] = None,
        config=None,
        limiter=None,
        dispatcher=None,
        idempotency_key: Optional[str] = None,
        queued_at=None,
    ):
        self.context = dict(context or {})
        self.config = config if config is not None else load_config()
        self.limiter = limiter or TokenBucketRateLimiter()
        self.dispatcher = dispatcher or get_dispatcher()
        self.queued_at = ensure_utc(queued_at) or now_utc()
        self._idempotency_key = idempotency_key

    @classmethod
    def idempotency_key_for(cls, context: Dict[str, Any]) -> str:
        digest = hashlib.md5(json.dumps(context or {}, sort_keys=True, default=str).encode()).hexdigest()
        return f"{cls.name}:{digest}"

    @property
    def idempotency_key(self) -> str:
        return self._idempotency_key or self.idempotency_key_for(self.context)

    def backoff(self, attempt: int) -> int:
        """Delay before retry number ``attempt`` (1-based)"""
        schedule = self.backoff_schedule or [30]
        return int(schedule[min(max(attempt, 1), len(schedule)) - 1])

    def retry_until(self):
        if self.retry_until_hours is None:
            return None
        return self.queued_at + timedelta(hours=self.retry_until_hours)

    def deadline_passed(self, now=None) -> bool:
        deadline = self.retry_until()
        return deadline is not None and ensure_utc(now or now_utc()) >= deadline

    def should_retry(self, attempt: int, now=None) -> bool:
        return attempt < self.tries and not self.deadline_passed(now)

    def limit_for(self, provider: str):
        return self.config.providers.limit_for(provider)

    def acquire(self, provider: str):
        """Take a token for ``provider`` or raise RateLimited for a delayed re-queue"""
        limit = self.limit_for(provider)
        decision = self.limiter.attempt(provider, limit.max_rps, limit.burst)
        if not decision.allowed:
            raise RateLimited(provider, decision.retry_after)
        return decision

    def dispatch(self, job_cls, context=None, key=None):
        return self.dispatcher.dispatch(job_cls, context or {}, key)

    def run(self):
        with JobRunTracker(self.name):
            return self.handle()

    def handle(self):
        raise NotImplementedError

    def failed(self, error: BaseException, attempt: int):
        """Terminal failure: tries exhausted or ``retry_until`` passed"""
        logger.error(
            "jobs.failed_terminal",
            job=self.name,
            attempt=attempt,
            tries=self.tries,
            retry_until=self.retry_until().isoformat() if self.retry_until() else None,
            idempotency_key=self.idempotency_key,
            context=self.context,
            error=str(error),
        )
