"""
Background Jobs - periodic dispatch of the ingestion jobs
"""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
import structlog

logger = structlog.get_logger("scheduler")


class JobScheduler:
    """Dispatches jobs on a timer; the work itself runs on the Celery workers"""

    def __init__(self, dispatcher=None):
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.dispatcher = dispatcher
        self._jobs_registered = False

    def init_app(self, app):
        """Register the schedule and start the scheduler thread"""
        self._register_jobs(app)
        self.scheduler.start()
        logger.info("scheduler.started", jobs=[job.id for job in self.scheduler.get_jobs()])

    def _register_jobs(self, app):
        if self._jobs_registered:
            return

        from jobs import FetchTopGamesJob, TgdbFullSyncJob, TgdbIncrementalUpdateJob, TgdbSweepShardJob

        # Trending catalogue refresh (daily at 02:00)
        self.scheduler.add_job(
            func=self._dispatch,
            trigger=CronTrigger(hour=2, minute=0),
            id="fetch_top_games",
            name="Fetch Top Games",
            args=[app, FetchTopGamesJob],
        )

        # TheGamesDB deltas (hourly)
        self.scheduler.add_job(
            func=self._dispatch,
            trigger=IntervalTrigger(hours=1),
            id="tgdb_incremental_update",
            name="TheGamesDB Incremental Update",
            args=[app, TgdbIncrementalUpdateJob],
        )

        # TheGamesDB shard sweep (daily at 04:00)
        self.scheduler.add_job(
            func=self._dispatch,
            trigger=CronTrigger(hour=4, minute=0),
            id="tgdb_sweep_shard",
            name="TheGamesDB Sweep Shard",
            args=[app, TgdbSweepShardJob],
        )

        # TheGamesDB full sync (weekly, Sunday 03:00)
        self.scheduler.add_job(
            func=self._dispatch,
            trigger=CronTrigger(day_of_week="sun", hour=3, minute=0),
            id="tgdb_full_sync",
            name="TheGamesDB Full Sync",
            args=[app, TgdbFullSyncJob],
        )

        self._jobs_registered = True

    def _dispatch(self, app, job_cls, context=None):
        from dispatcher import get_dispatcher

        with app.app_context():
            dispatcher = self.dispatcher or get_dispatcher()
            dispatcher.dispatch(job_cls, context or {})
            logger.info("scheduler.dispatched", task=job_cls.task_name)

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("scheduler.shutdown")
