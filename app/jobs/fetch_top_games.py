"""
Seed the catalogue from the trending feeds and fan out per-product work
"""
from datetime import date
from typing import Dict, Optional

import structlog

from constants import QUEUE_RAWG
from db import atomic
from exceptions import RateLimited
from identity import IdentityResolver, determine_platform_family, is_excluded_pc_release
from jobs.base import IngestionJob
from job_tracker import SnapshotTracker
from services.catalogue.aggregator import CatalogueAggregator, build_catalogue_registry
from services.catalogue.trending_data import MIRROR_SOURCE, TrendingGameData
from utils import clamp, now_utc, to_int

logger = structlog.get_logger("catalogue")

PIPELINE = "catalogue.aggregate"
RATE_LIMITED_PROVIDER = "rawg"

# metadata key holding each source's native id, and the alias provider it maps to
EXTERNAL_ID_KEYS = {
    "rawg": "rawg_id",
    "thegamesdb": "thegamesdb_id",
    "giantbomb": "giantbomb_id",
    "nexarda": "nexarda_id",
}


def popularity_score(game: TrendingGameData, index: int, total: int) -> float:
    rank_score = 1 - (index / max(1, total))
    if game.metacritic is not None:
        rating_score = clamp(game.metacritic / 100, 0, 1)
    elif game.rating is not None:
        rating_score = clamp(game.rating / 5, 0, 1)
    else:
        rating_score = 0.5
    return round(clamp(0.7 * rank_score + 0.3 * rating_score, 0.0, 1.0), 3)


def rating_score(game: TrendingGameData) -> float:
    if game.metacritic is not None:
        return float(clamp(game.metacritic, 0, 100))
    if game.rating is not None:
        return float(clamp(round(game.rating * 20), 0, 100))
    return 0.0


def freshness_score(released_at: Optional[date], today: Optional[date] = None) -> float:
    """1.0 for unreleased titles, decaying to a 0.1 floor over two years"""
    if released_at is None:
        return 0.5
    today = today or now_utc().date()
    if released_at > today:
        return 1.0
    days = (today - released_at).days
    return round(max(0.1, 1 - min(days, 730) / 730), 3)


def alias_for(game: TrendingGameData):
    """``(provider, provider_game_id)`` the entry is known by at its source"""
    source = game.source()
    metadata = game.metadata()
    if source == "rawg":
        return "rawg", metadata.get("rawg_slug") or game.slug
    if source == MIRROR_SOURCE:
        return "thegamesdb", metadata.get("thegamesdb_id") or game.slug
    if source == "giantbomb":
        return "giantbomb", metadata.get("giantbomb_id") or metadata.get("giantbomb_url") or game.slug
    if source == "nexarda":
        return "nexarda", metadata.get("nexarda_slug") or metadata.get("nexarda_id") or game.slug
    return source, game.slug


class FetchTopGamesJob(IngestionJob):
    name = "fetch_top_games"
    task_name = "tasks.fetch_top_games"
    queue = QUEUE_RAWG
    tries = 3
    backoff_schedule = [30]

    def __init__(self, context=None, registry=None, resolver=None, **kwargs):
        super().__init__(context, **kwargs)
        self.registry = registry
        self.resolver = resolver or IdentityResolver()

    @classmethod
    def idempotency_key_for(cls, context):
        sources = ",".join(sorted((context or {}).get("only_sources") or [])) or "all"
        return f"fetch_top_games:{sources}:{now_utc().date().isoformat()}"

    def effective_config(self):
        """Config for this pass; RAWG is dropped when its bucket is empty and other sources can cover"""
        config = self.config
        only = self.context.get("only_sources")
        if only:
            config = config.only_sources(*only)

        rawg = config.catalogue.source(RATE_LIMITED_PROVIDER)
        if not rawg.enabled:
            return config

        limit = self.limit_for(RATE_LIMITED_PROVIDER)
        decision = self.limiter.attempt(RATE_LIMITED_PROVIDER, limit.max_rps, limit.burst)
        if decision.allowed:
            return config

        alternates = [
            s.key for s in config.catalogue.ordered_sources() if s.enabled and s.key != RATE_LIMITED_PROVIDER
        ]
        if not alternates:
            raise RateLimited(RATE_LIMITED_PROVIDER, decision.retry_after)

        logger.info(
            "catalogue.fetch_top_games_rawg_skipped",
            retry_after=decision.retry_after,
            alternates=alternates,
        )
        return config.with_source(RATE_LIMITED_PROVIDER, enabled=False)

    def handle(self):
        tracker_context = {"queue": self.queue, "rate_limited_provider": RATE_LIMITED_PROVIDER}
        with SnapshotTracker("seed:trending_games", provider=PIPELINE, context=tracker_context) as run:
            config = self.effective_config()
            limit = to_int(self.context.get("limit")) or config.catalogue.trending_seed_limit
            window_days = to_int(self.context.get("window_days")) or config.catalogue.window_days
            run.context["limit"] = limit

            registry = self.registry if self.registry is not None else build_catalogue_registry(config, self.limiter)
            aggregate = CatalogueAggregator(config, registry).aggregate(limit, window_days)
            run.context["sources"] = aggregate.sources

            games = aggregate.entries
            if not games:
                logger.warning("catalogue.fetch_top_games_empty", pipeline=PIPELINE)
                return []

            products: Dict[int, str] = {}
            with atomic():
                total = max(1, len(games))
                for index, game in enumerate(games):
                    product = self.persist_game(game, index, total)
                    if product is not None:
                        products[product.id] = product.name

            for product_id, name in products.items():
                self.fan_out(config, product_id, name)

            run.row_count = len(games)
            run.context["dispatched_product_ids"] = list(products)

        logger.info("catalogue.fetch_top_games_completed", pipeline=PIPELINE, count=len(products))
        return list(products)

    def persist_game(self, game: TrendingGameData, index: int, total: int):
        platform = game.primary_platform()
        family = determine_platform_family(platform)
        if is_excluded_pc_release(family, game.released_at):
            logger.debug("catalogue.fetch_top_games_pc_cutoff", slug=game.slug)
            return None

        product, created = self.resolver.resolve(
            game.name,
            game.released_at,
            platform if platform != "Unknown" else None,
            slug=game.slug or game.name,
            category="Game",
        )
        if product is None:
            return None

        metadata = game.metadata()
        self.resolver.merge_source(
            product,
            game.source(),
            {**metadata, "popularity_rank": index + 1},
            platforms=game.platforms,
            genres=game.genres,
        )
        self.resolver.merge_external_ids(
            product, {provider: metadata.get(key) for provider, key in EXTERNAL_ID_KEYS.items()}
        )

        product.popularity_score = popularity_score(game, index, total)
        product.rating = rating_score(game)
        product.freshness_score = freshness_score(game.released_at)

        self.resolver.sync_platforms(product, game.platforms)
        self.resolver.sync_genres(product, game.genres)
        provider, provider_game_id = alias_for(game)
        self.resolver.link_alias(product, provider, provider_game_id, game.name)

        if created:
            logger.info("catalogue.product_created", product_id=product.id, slug=product.slug, source=game.source())
        return product

    def fan_out(self, config, product_id: int, name: str):
        from jobs.build_series import BuildSeriesJob
        from jobs.enrich_game import EnrichGameJob
        from jobs.fetch_media import FetchProductMediaJob
        from jobs.fetch_offers import FetchOffersJob
        from jobs.verify_links import VerifyLinksJob

        self.dispatch(EnrichGameJob, {"product_id": product_id})
        if config.pricing.is_enabled("pricecharting"):
            self.dispatch(FetchOffersJob, {"product_id": product_id})
        self.dispatch(BuildSeriesJob, {"product_id": product_id})
        if not (config.catalogue.skip_verify_links or self.context.get("skip_verify_links")):
            self.dispatch(VerifyLinksJob, {"product_id": product_id})
        self.dispatch(FetchProductMediaJob, {"product_id": product_id, "query": name})
