from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from flask import Response
import time

# Provider Metrics
provider_requests_total = Counter(
    "gamecompare_provider_requests_total", "Outbound provider requests", ["provider", "status"]
)

provider_request_duration_seconds = Histogram(
    "gamecompare_provider_request_duration_seconds", "Outbound provider request duration", ["provider"]
)

rate_limit_denials_total = Counter(
    "gamecompare_rate_limit_denials_total", "Token bucket denials", ["provider"]
)

# Job Metrics
job_runs_total = Counter("gamecompare_job_runs_total", "Ingestion job runs", ["job", "status"])

job_duration_seconds = Histogram("gamecompare_job_duration_seconds", "Ingestion job duration", ["job"])

ACTIVE_JOBS = Gauge("gamecompare_active_jobs", "Number of ingestion jobs currently running")

# Catalogue Metrics
catalogue_entries_total = Counter(
    "gamecompare_catalogue_entries_total", "Entries contributed by each catalogue source", ["source"]
)


def init_metrics(app):
    @app.route("/metrics")
    def metrics():
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    app.logger.info("Prometheus metrics initialized at /metrics")


class JobRunTracker:
    """Context manager recording one job run.

    Example:
        with JobRunTracker("fetch_top_games"):
            job.handle()
    """

    def __init__(self, job):
        self.job = job
        self.start_time = None

    def __enter__(self):
        ACTIVE_JOBS.inc()
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        ACTIVE_JOBS.dec()
        job_duration_seconds.labels(job=self.job).observe(time.time() - self.start_time)
        job_runs_total.labels(job=self.job, status="failed" if exc_type else "succeeded").inc()
        return False
