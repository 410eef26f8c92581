"""
Jobs package - retryable ingestion jobs and their schedule
"""
from jobs.build_series import BuildSeriesJob
from jobs.enrich_game import EnrichGameJob
from jobs.fetch_media import FetchProductMediaJob
from jobs.fetch_offers import FetchOffersForProductJob, FetchOffersJob
from jobs.fetch_prices import FetchPricesJob
from jobs.fetch_top_games import FetchTopGamesJob
from jobs.tgdb_sync import TgdbFullSyncJob, TgdbIncrementalUpdateJob, TgdbSweepShardJob
from jobs.verify_links import VerifyLinksJob

# Celery task name -> job class
JOBS = {
    job.task_name: job
    for job in (
        FetchTopGamesJob,
        EnrichGameJob,
        FetchOffersForProductJob,
        FetchPricesJob,
        FetchOffersJob,
        FetchProductMediaJob,
        BuildSeriesJob,
        VerifyLinksJob,
        TgdbFullSyncJob,
        TgdbIncrementalUpdateJob,
        TgdbSweepShardJob,
    )
}

__all__ = ["JOBS"] + [job.__name__ for job in JOBS.values()]
