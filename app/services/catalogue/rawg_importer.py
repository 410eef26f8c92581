"""
RAWG trending importer: most-added games released inside a date window
"""
from datetime import timedelta
from typing import List

import structlog

from exceptions import ProviderException, RateLimited, SourceUnavailable
from services.catalogue.base import TrendingSource
from services.catalogue.trending_data import TrendingGameData
from services.http_client import build_client
from utils import data_get, now_utc

logger = structlog.get_logger("catalogue.rawg")

RAWG_BASE_URL = "https://api.rawg.io/api"
MAX_PAGE_SIZE = 40


class RawgTrendingImporter(TrendingSource):
    key = "rawg"

    def __init__(self, source=None, http=None, config=None, limiter=None):
        super().__init__(source, http)
        if self.http is None:
            self.http = build_client(
                "rawg",
                self.source.base_url or RAWG_BASE_URL,
                config=config,
                limiter=limiter,
                timeout=self.source.timeout,
            )

    def enabled(self) -> bool:
        return super().enabled() and bool((self.source.api_key or "").strip())

    def fetch(self, query, options=None) -> List[TrendingGameData]:
        limit = int(query or 0)
        if limit <= 0:
            return []

        window_days = self.window_days(options)
        today = now_utc().date()
        start = today - timedelta(days=max(30, window_days))

        results: List[TrendingGameData] = []
        seen = set()
        page = 1

        while len(results) < limit:
            params = {
                "ordering": "-added",
                "dates": f"{start.isoformat()},{today.isoformat()}",
                "page": page,
                "page_size": min(MAX_PAGE_SIZE, limit - len(results)),
                "key": self.source.api_key,
            }
            logger.info("catalogue.sources.rawg_request", page=page, remaining=limit - len(results))

            try:
                payload = self.http.get_json("/games", params=params)
            except (ProviderException, RateLimited) as e:
                logger.warning("catalogue.sources.rawg_failed", page=page, error=str(e))
                if not results:
                    raise SourceUnavailable(str(e), provider=self.key)
                break

            items = data_get(payload, "results", [])
            if not isinstance(items, list) or not items:
                break

            for item in items:
                if not isinstance(item, dict):
                    continue
                game = TrendingGameData.from_rawg(item)
                if game.slug.lower() in seen:
                    continue
                seen.add(game.slug.lower())
                results.append(game)
                if len(results) >= limit:
                    break

            page += 1
            if not data_get(payload, "next"):
                break

        return results
