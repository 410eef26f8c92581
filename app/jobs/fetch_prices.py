"""
Run one price provider through the ingestion manager
"""
import random

import structlog

from constants import QUEUE_FETCH
from jobs.base import IngestionJob
from services.pricing.manager import PriceIngestionManager
from utils import isoformat, now_utc

logger = structlog.get_logger("price_ingest")

BACKOFF_BASE = [30, 60, 120, 240, 480]


def jittered_backoff(base=BACKOFF_BASE, jitter: int = 15, floor: int = 15, rng=random):
    return [max(floor, seconds + rng.randint(-jitter, jitter)) for seconds in base]


class FetchPricesJob(IngestionJob):
    """
    Context: ``{"provider": ..., "window": ..., <target lists>}``. Target
    lists (``products``, ``requests``, ``catalog`` ...) are handed to the
    provider as options for this run only.
    """

    name = "fetch_prices"
    task_name = "tasks.fetch_prices"
    queue = QUEUE_FETCH
    tries = 5
    retry_until_hours = 6

    def __init__(self, context=None, manager=None, **kwargs):
        super().__init__(context, **kwargs)
        self.manager = manager
        self.backoff_schedule = jittered_backoff()

    @classmethod
    def idempotency_key_for(cls, context):
        context = context or {}
        return f"fetch:{context.get('provider')}:{context.get('window') or isoformat(now_utc())}"

    def handle(self):
        provider = self.context.get("provider")
        ingest_context = {k: v for k, v in self.context.items() if k != "provider"}
        manager = self.manager or PriceIngestionManager(self.config, limiter=self.limiter)

        logger.info("fetch_prices_job.started", provider=provider, job=self.idempotency_key)
        snapshot = manager.ingest(provider, ingest_context)
        logger.info(
            "fetch_prices_job.finished",
            provider=provider,
            job=self.idempotency_key,
            status=snapshot.status if snapshot is not None else None,
        )
        return snapshot.id if snapshot is not None else None
