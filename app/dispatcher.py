"""
Job dispatch: idempotency claims in Redis, Celery queues, inline fallback
"""
from typing import Any, Dict, Optional

import structlog
from kombu.exceptions import OperationalError

from redis_cache import claim_key, release_key
from utils import isoformat, now_utc

logger = structlog.get_logger("dispatch")

# How long a dispatched key blocks duplicates when the task never reports back
DISPATCH_CLAIM_TTL = 6 * 3600


def claim_name(idempotency_key: str) -> str:
    return f"dispatch:{idempotency_key}"


class CeleryDispatcher:
    """
    ``dispatch(job_cls, context, key)`` queues ``job_cls.task_name``.

    The idempotency key is claimed with ``SET NX EX`` first; a second
    dispatch with the same key is skipped until the task finishes and
    releases it. When the broker cannot be reached the task runs in-process
    through ``task.apply`` instead of being dropped.
    """

    def __init__(self, claim_ttl: int = DISPATCH_CLAIM_TTL):
        self.claim_ttl = claim_ttl

    def dispatch(self, job_cls, context: Optional[Dict[str, Any]] = None, key: Optional[str] = None, countdown=None):
        context = dict(context or {})
        key = key or job_cls.idempotency_key_for(context)

        if not claim_key(claim_name(key), self.claim_ttl):
            logger.info("dispatch.duplicate_skipped", task=job_cls.task_name, idempotency_key=key)
            return None

        from celery_app import celery
        import tasks  # noqa: F401 registers the task functions

        task = celery.tasks[job_cls.task_name]
        kwargs = {"context": context, "idempotency_key": key, "queued_at": isoformat(now_utc())}

        try:
            result = task.apply_async(kwargs=kwargs, queue=job_cls.queue, countdown=countdown)
        except OperationalError as e:
            logger.warning("dispatch.broker_unavailable", task=job_cls.task_name, idempotency_key=key, error=str(e))
            return task.apply(kwargs=kwargs)

        logger.debug("dispatch.queued", task=job_cls.task_name, queue=job_cls.queue, idempotency_key=key)
        return result

    @staticmethod
    def release(key: Optional[str]):
        if key:
            release_key(claim_name(key))


_dispatcher = None


def get_dispatcher():
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = CeleryDispatcher()
    return _dispatcher


def set_dispatcher(dispatcher):
    """Swap the process-wide dispatcher (CLI inline runs, tests)"""
    global _dispatcher
    _dispatcher = dispatcher
