"""
GiantBomb trending importer: most-reviewed games released inside a window
"""
from datetime import timedelta
from typing import List

import structlog

from exceptions import ProviderException, RateLimited, SourceUnavailable
from services.catalogue.base import TrendingSource
from services.catalogue.trending_data import TrendingGameData
from services.giantbomb_api import GiantBombClient
from utils import now_utc, to_int

logger = structlog.get_logger("catalogue.giantbomb")


class GiantBombTrendingImporter(TrendingSource):
    key = "giantbomb"

    def __init__(self, source=None, http=None, config=None, limiter=None, client=None):
        super().__init__(source, http)
        self.client = client or GiantBombClient(
            self.source.api_key,
            base_url=self.source.base_url,
            config=config,
            limiter=limiter,
            http=http,
            timeout=self.source.timeout,
        )

    def enabled(self) -> bool:
        return super().enabled() and self.client.enabled()

    def fetch(self, query, options=None) -> List[TrendingGameData]:
        limit = int(query or 0)
        if limit <= 0:
            return []

        today = now_utc().date()
        start = today - timedelta(days=max(30, self.window_days(options)))
        logger.info("catalogue.sources.giantbomb_request", limit=limit, start=start.isoformat())

        try:
            results = self.client.games(
                limit=min(100, limit),
                sort="number_of_user_reviews:desc",
                filter_=f"original_release_date:{start.isoformat()}|{today.isoformat()}",
            )
        except (ProviderException, RateLimited) as e:
            raise SourceUnavailable(f"GiantBomb trending request failed: {e}", provider=self.key)

        min_reviews = self.source.min_user_reviews or 0
        entries = []
        for item in results:
            if min_reviews > 0 and (to_int(item.get("number_of_user_reviews")) or 0) < min_reviews:
                continue
            game = TrendingGameData.from_giantbomb(item)
            if game.slug:
                entries.append(game)

        return entries[:limit]
