from celery import Celery
from kombu import Queue
import structlog

from constants import (
    QUEUE_AGGREGATE,
    QUEUE_FETCH,
    QUEUE_GIANTBOMB,
    QUEUE_MEDIA,
    QUEUE_OFFERS,
    QUEUE_RAWG,
    QUEUE_VERIFY,
    REDIS_URL,
)

logger = structlog.get_logger("celery")

QUEUES = [QUEUE_FETCH, QUEUE_OFFERS, QUEUE_MEDIA, QUEUE_AGGREGATE, QUEUE_VERIFY, QUEUE_RAWG, QUEUE_GIANTBOMB]


def make_celery(app_name=__name__, broker_url=REDIS_URL):
    celery = Celery(app_name, broker=broker_url, backend=broker_url, include=["tasks"])

    celery.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_queues=[Queue(name) for name in QUEUES],
        task_default_queue=QUEUE_FETCH,
        # a job is acknowledged only once it finished, so a dead worker hands it back
        task_acks_late=True,
        worker_prefetch_multiplier=1,
    )
    logger.debug("celery.configured", queues=QUEUES)
    return celery


celery = make_celery("gamecompare")
