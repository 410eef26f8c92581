"""
Celery tasks: one thin task per ingestion job.

``execute()`` applies the job's retry policy on top of Celery's retry
machinery: rate-limit denials come back after ``retry_after`` seconds,
other errors after the job's backoff, and a job out of tries (or past its
``retry_until``) is failed terminally. The dispatch idempotency key is
released once the job succeeds or fails for good.
"""
import structlog

from celery_app import celery
from dispatcher import get_dispatcher
from exceptions import RateLimited
from jobs import JOBS

logger = structlog.get_logger("tasks")

# Lazy initialization of Flask app to avoid errors on import
_flask_app = None


def get_flask_app():
    """Get or create the Flask app lazily, once per worker process"""
    global _flask_app
    if _flask_app is None:
        from app import configure_logging, create_app

        configure_logging()
        logger.info("tasks.flask_app_created")
        _flask_app = create_app(start_scheduler=False)
    return _flask_app


def execute(task, job_cls, context=None, idempotency_key=None, queued_at=None):
    attempt = task.request.retries + 1
    # inline fallback runs (task.apply) get a single attempt
    inline = bool(task.request.is_eager)
    job = job_cls(context, idempotency_key=idempotency_key, queued_at=queued_at)

    try:
        result = job.run()
    except RateLimited as e:
        if inline or not job.should_retry(attempt):
            _fail(job, e, attempt)
            raise
        logger.info("tasks.rate_limited", task=task.name, provider=e.provider, retry_after=e.retry_after)
        raise task.retry(exc=e, countdown=e.retry_after)
    except Exception as e:
        if inline or not job.should_retry(attempt):
            _fail(job, e, attempt)
            raise
        countdown = job.backoff(attempt)
        logger.warning("tasks.retrying", task=task.name, attempt=attempt, countdown=countdown, error=str(e))
        raise task.retry(exc=e, countdown=countdown)

    get_dispatcher().release(job.idempotency_key)
    return result


def _fail(job, error, attempt):
    job.failed(error, attempt)
    get_dispatcher().release(job.idempotency_key)


def run_job(task, context=None, idempotency_key=None, queued_at=None):
    job_cls = JOBS[task.name]
    with get_flask_app().app_context():
        logger.info("task_execution_started", task=task.name, attempt=task.request.retries + 1)
        return execute(task, job_cls, context, idempotency_key, queued_at)


@celery.task(name="tasks.fetch_top_games", bind=True, max_retries=None)
def fetch_top_games(self, context=None, idempotency_key=None, queued_at=None):
    """Aggregate the trending catalogue and fan out follow-up jobs"""
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.enrich_game", bind=True, max_retries=None)
def enrich_game(self, context=None, idempotency_key=None, queued_at=None):
    """Fill a product's details from GiantBomb"""
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.fetch_offers_for_product", bind=True, max_retries=None)
def fetch_offers_for_product(self, context=None, idempotency_key=None, queued_at=None):
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.fetch_prices", bind=True, max_retries=None)
def fetch_prices(self, context=None, idempotency_key=None, queued_at=None):
    """One price provider ingest"""
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.fetch_offers", bind=True, max_retries=None)
def fetch_offers(self, context=None, idempotency_key=None, queued_at=None):
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.fetch_product_media", bind=True, max_retries=None)
def fetch_product_media(self, context=None, idempotency_key=None, queued_at=None):
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.build_series", bind=True, max_retries=None)
def build_series(self, context=None, idempotency_key=None, queued_at=None):
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.verify_links", bind=True, max_retries=None)
def verify_links(self, context=None, idempotency_key=None, queued_at=None):
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.tgdb_full_sync", bind=True, max_retries=None)
def tgdb_full_sync(self, context=None, idempotency_key=None, queued_at=None):
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.tgdb_incremental_update", bind=True, max_retries=None)
def tgdb_incremental_update(self, context=None, idempotency_key=None, queued_at=None):
    return run_job(self, context, idempotency_key, queued_at)


@celery.task(name="tasks.tgdb_sweep_shard", bind=True, max_retries=None)
def tgdb_sweep_shard(self, context=None, idempotency_key=None, queued_at=None):
    return run_job(self, context, idempotency_key, queued_at)
