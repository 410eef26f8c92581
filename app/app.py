"""
GameCompare - catalogue, media and price ingestion
Application factory and CLI commands
"""
import logging
import os
import sys

import click
import structlog
from flask import Flask

from constants import BUILD_VERSION, CONFIG_DIR, GAMECOMPARE_DB
from db import db, init_db
from metrics import init_metrics

logger = structlog.get_logger("main")


def configure_logging(level=logging.INFO):
    """Shared by the Flask process and the Celery workers"""
    logging.basicConfig(level=level, format="%(message)s", handlers=[logging.StreamHandler(sys.stdout)])

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
            if os.environ.get("LOG_FORMAT") == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def create_app(config_overrides=None, start_scheduler=None):
    """Application factory"""
    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = GAMECOMPARE_DB
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SCHEDULER_ENABLED"] = os.environ.get("SCHEDULER_ENABLED", "false").lower() == "true"
    app.config.update(config_overrides or {})

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
        os.makedirs(CONFIG_DIR, exist_ok=True)

    db.init_app(app)
    init_db(app)
    init_metrics(app)
    register_commands(app)

    if start_scheduler is None:
        start_scheduler = app.config["SCHEDULER_ENABLED"]
    if start_scheduler:
        from jobs.scheduler import JobScheduler

        app.scheduler = JobScheduler()
        app.scheduler.init_app(app)

    logger.info("app.created", build=BUILD_VERSION, scheduler=bool(start_scheduler))
    return app


def register_commands(app):
    """Flask CLI entry points; each runs its job in-process"""

    @app.cli.command("fetch-top-games")
    @click.option("--limit", type=int, default=None, help="Number of trending entries to keep.")
    @click.option("--window-days", type=int, default=None)
    @click.option("--skip-verify-links", is_flag=True, default=False)
    def fetch_top_games_command(limit, window_days, skip_verify_links):
        """Aggregate trending games and queue the follow-up jobs."""
        from jobs import FetchTopGamesJob

        context = {"limit": limit, "window_days": window_days, "skip_verify_links": skip_verify_links}
        product_ids = FetchTopGamesJob({k: v for k, v in context.items() if v}).run()
        click.echo(f"Persisted {len(product_ids)} products.")

    @app.cli.command("tgdb-sync")
    @click.argument("mode", type=click.Choice(["full", "incremental", "sweep"]))
    @click.option("--shard", type=int, default=None, help="Sweep shard, defaults to today's.")
    def tgdb_sync_command(mode, shard):
        """Refresh the TheGamesDB mirror."""
        from jobs import TgdbFullSyncJob, TgdbIncrementalUpdateJob, TgdbSweepShardJob

        job_cls = {"full": TgdbFullSyncJob, "incremental": TgdbIncrementalUpdateJob, "sweep": TgdbSweepShardJob}[mode]
        context = {"shard": shard} if shard is not None else {}
        upserts = job_cls(context).run()
        click.echo(f"TheGamesDB {mode} sync upserted {upserts} games.")

    @app.cli.command("seed-source")
    @click.argument("source")
    @click.option("--limit", type=int, default=None)
    def seed_source_command(source, limit):
        """Seed the catalogue from a single source."""
        from jobs import FetchTopGamesJob
        from settings import load_config

        config = load_config()
        if config.catalogue.sources.get(source) is None:
            raise click.BadParameter(f"Unknown catalogue source [{source}].", param_hint="source")

        context = {"limit": limit} if limit else {}
        product_ids = FetchTopGamesJob(context, config=config.only_sources(source)).run()
        click.echo(f"Seeded {len(product_ids)} products from {source}.")

    @app.cli.command("ingest-prices")
    @click.argument("providers", nargs=-1, required=True)
    def ingest_prices_command(providers):
        """Run a price ingest now; with several providers the least used one runs."""
        from services.pricing.manager import PriceIngestionManager
        from settings import load_config

        manager = PriceIngestionManager(load_config())
        context = {"source": "cli"}
        if len(providers) == 1:
            snapshot = manager.ingest(providers[0], context)
        else:
            snapshot = manager.ingest_with_rotation(providers, context)
        click.echo(f"Snapshot {snapshot.id}: {snapshot.status} ({snapshot.row_count or 0} rows).")
