"""
Nexarda importers: the popularity listing and the product feed
"""
import json
import os
from datetime import timedelta
from typing import List

import structlog

from exceptions import ProviderException, RateLimited, SourceUnavailable
from services.catalogue.base import TrendingSource
from services.catalogue.trending_data import TrendingGameData
from services.http_client import build_client
from utils import data_get, now_utc, to_float

logger = structlog.get_logger("catalogue.nexarda")

NEXARDA_BASE_URL = "https://www.nexarda.com/api/v3"

_MISSING = object()


def item_list(payload, *paths) -> List[dict]:
    """
    First present path wins. A single dict is treated as a one-item list;
    anything that is not a list of dicts yields no items.
    """
    items = _MISSING
    for path in paths:
        items = payload if path is None else data_get(payload, path, _MISSING)
        if items is not _MISSING:
            break

    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class _NexardaSource(TrendingSource):
    provider = "nexarda"

    def __init__(self, source=None, http=None, config=None, limiter=None):
        super().__init__(source, http)
        if self.http is None:
            headers = {"X-Api-Key": self.source.api_key} if self.source.api_key else None
            self.http = build_client(
                self.provider,
                self.source.base_url or NEXARDA_BASE_URL,
                config=config,
                limiter=limiter,
                timeout=self.source.timeout,
                headers=headers,
            )

    @staticmethod
    def _params(**values):
        return {k: v for k, v in values.items() if v is not None and v != ""}


class NexardaTrendingImporter(_NexardaSource):
    key = "nexarda"

    def fetch(self, query, options=None) -> List[TrendingGameData]:
        limit = int(query or 0)
        if limit <= 0:
            return []
        options = options or {}

        start = now_utc().date() - timedelta(days=max(30, self.window_days(options)))
        params = self._params(
            key=self.source.api_key,
            limit=min(100, limit),
            sort=options.get("sort") or "popularity_desc",
            min_release_date=options.get("min_release_date") or start.isoformat(),
            platform=options.get("platform"),
            page=options.get("page"),
            offset=options.get("offset"),
        )
        logger.info("catalogue.sources.nexarda_request", limit=limit, sort=params["sort"])

        try:
            payload = self.http.get_json("/games/list", params=params)
        except (ProviderException, RateLimited) as e:
            raise SourceUnavailable(f"Nexarda trending request failed: {e}", provider=self.key)

        min_score = self.source.min_score or 0
        entries = []
        for item in item_list(payload, "data.items", "data", "results"):
            if min_score > 0:
                score = to_float(item.get("score", item.get("rating"))) or 0.0
                if score < min_score:
                    continue
            game = TrendingGameData.from_nexarda(item)
            if game.slug:
                entries.append(game)

        return entries[:limit]


class NexardaFeedImporter(_NexardaSource):
    """
    Reads an offline catalogue export when ``local_file`` points at one,
    otherwise the ``/feed`` endpoint. Feed failures are soft (no entries).
    """

    key = "nexarda_feed"

    def enabled(self) -> bool:
        return bool(self.source.enabled)

    def fetch(self, query, options=None) -> List[TrendingGameData]:
        limit = int(query or 0)
        if limit <= 0:
            return []
        options = options or {}

        local = self._read_local(options.get("file") or self.source.local_file)
        if local:
            logger.info("catalogue.sources.nexarda_local_catalogue", count=len(local))
            return [TrendingGameData.from_nexarda(item) for item in local[:limit]]

        params = self._params(
            key=self.source.api_key,
            limit=min(200, limit),
            page=options.get("page"),
            offset=options.get("offset"),
            since=options.get("since"),
        )
        try:
            payload = self.http.get_json("/feed", params=params)
        except (ProviderException, RateLimited) as e:
            logger.warning("catalogue.sources.nexarda_feed_failed", error=str(e))
            return []

        items = item_list(payload, "data.items", "games", "data", "results")
        return [TrendingGameData.from_nexarda(item) for item in items[:limit]]

    @staticmethod
    def _read_local(path) -> List[dict]:
        if not path or not os.path.isfile(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as e:
            logger.warning("catalogue.sources.nexarda_local_unreadable", path=path, error=str(e))
            return []

        for path_key in ("items", "data.items", "games", "consoles"):
            items = item_list(payload, path_key)
            if items:
                return items
        return item_list(payload, None)
