"""
Collect images and videos for one product
"""
import hashlib
import json

import structlog

from constants import QUEUE_MEDIA
from jobs.base import IngestionJob
from repositories.product_repository import ProductRepository
from services.media.aggregator import build_media_aggregator

logger = structlog.get_logger("media")


class FetchProductMediaJob(IngestionJob):
    name = "fetch_product_media"
    task_name = "tasks.fetch_product_media"
    queue = QUEUE_MEDIA
    tries = 3
    backoff_schedule = [30, 90, 180]

    def __init__(self, context=None, aggregator=None, **kwargs):
        super().__init__(context, **kwargs)
        self.aggregator = aggregator

    @classmethod
    def idempotency_key_for(cls, context):
        context = dict(context or {})
        product_id = context.pop("product_id", None)
        digest = hashlib.sha1(json.dumps(context, sort_keys=True, default=str).encode()).hexdigest()
        return f"media:{product_id}:{digest}"

    def handle(self):
        product_id = self.context.get("product_id")
        product = ProductRepository.get_by_id(product_id)
        if product is None:
            logger.warning("media.product_missing", product_id=product_id)
            return 0

        aggregator = self.aggregator or build_media_aggregator(self.config, self.limiter)
        media_context = {k: v for k, v in self.context.items() if k != "product_id"}
        results = aggregator.fetch_and_store(product, media_context)

        logger.info("media.job_completed", product_id=product.id, fetched=len(results))
        return len(results)
