"""
Catalogue aggregator: merge every configured trending source into one
deduplicated, ranked list.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from exceptions import SourceUnavailable
from metrics import catalogue_entries_total
from services.catalogue.trending_data import TrendingGameData
from services.providers import ProviderRegistry
from utils import slugify

logger = structlog.get_logger("catalogue.aggregate")


@dataclass
class CatalogueAggregateResult:
    entries: List[TrendingGameData] = field(default_factory=list)
    sources: Dict[str, Dict[str, int]] = field(default_factory=dict)
    total_requested: int = 0


def resolve_source_limit(preferred: Optional[int], remaining: int, fallback: int) -> int:
    """
    How many entries to ask one source for.

    An unconfigured (or non-positive) limit takes whatever is still needed;
    a configured limit caps that need. Once the need is met only
    ``always_fetch`` sources get here, and they take their own limit.
    """
    if preferred is None or preferred <= 0:
        return remaining if remaining > 0 else fallback
    return min(preferred, max(1, remaining)) if remaining > 0 else preferred


class CatalogueAggregator:
    """
    ``aggregate()`` walks ``config.catalogue.ordered_sources()``. Source
    order is the dedup priority: the first source to return a slug keeps it.
    A failing source contributes zero entries and never stops the pass.
    """

    def __init__(self, config, registry: ProviderRegistry):
        self.config = config
        self.registry = registry

    def aggregate(self, limit: int, window_days: Optional[int] = None) -> CatalogueAggregateResult:
        limit = max(1, int(limit or 1))
        window_days = window_days or self.config.catalogue.window_days

        collected: List[TrendingGameData] = []
        meta: Dict[str, Dict[str, int]] = {}
        remaining = limit

        for source in self.config.catalogue.ordered_sources():
            if not source.enabled:
                continue
            if remaining <= 0 and not source.always_fetch:
                continue

            take = resolve_source_limit(source.limit, remaining, limit)
            if take <= 0:
                continue

            items = self._fetch_source(source.key, take, window_days)
            collected.extend(items)
            meta[source.key] = {"count": len(items), "requested": take}
            catalogue_entries_total.labels(source=source.key).inc(len(items))

            remaining = max(0, remaining - len(items))

        entries = dedupe_by_slug(collected)[:limit]
        logger.info(
            "catalogue.aggregate.completed",
            requested=limit,
            returned=len(entries),
            sources=meta,
        )
        return CatalogueAggregateResult(entries=entries, sources=meta, total_requested=limit)

    def _fetch_source(self, key: str, take: int, window_days: int) -> List[TrendingGameData]:
        client = self.registry.get(key)
        try:
            if client is None or not client.enabled():
                raise SourceUnavailable(f"Catalogue source {key} is not available", provider=key)
            items = client.fetch(take, {"window_days": window_days})
        except SourceUnavailable as e:
            logger.warning("catalogue.aggregate.source_failed", source=key, error=e.message)
            return []
        except Exception as e:
            logger.exception("catalogue.aggregate.source_failed", source=key, error=str(e))
            return []

        return [item for item in (items or []) if isinstance(item, TrendingGameData)][:take]


def dedupe_by_slug(entries: List[TrendingGameData]) -> List[TrendingGameData]:
    seen = set()
    unique_entries = []
    for entry in entries:
        key = slugify(entry.slug or entry.name)
        if not key or key in seen:
            continue
        seen.add(key)
        unique_entries.append(entry)
    return unique_entries


def build_catalogue_registry(config, limiter=None) -> ProviderRegistry:
    """Registry with one client per catalogue source, each bound to its own SourceConfig"""
    from services.catalogue.giantbomb_importer import GiantBombTrendingImporter
    from services.catalogue.mirror_source import MirrorTrendingSource
    from services.catalogue.nexarda_importer import NexardaFeedImporter, NexardaTrendingImporter
    from services.catalogue.rawg_importer import RawgTrendingImporter

    catalogue = config.catalogue
    return ProviderRegistry(
        [
            RawgTrendingImporter(catalogue.source("rawg"), config=config, limiter=limiter),
            MirrorTrendingSource(catalogue.source("thegamesdb_mirror")),
            GiantBombTrendingImporter(catalogue.source("giantbomb"), config=config, limiter=limiter),
            NexardaTrendingImporter(catalogue.source("nexarda"), config=config, limiter=limiter),
            NexardaFeedImporter(catalogue.source("nexarda_feed"), config=config, limiter=limiter),
        ]
    )
