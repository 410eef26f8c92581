"""
Trending source backed by the local TheGamesDB mirror
"""
from typing import List

from repositories.mirror_repository import TheGamesDbMirrorRepository
from services.catalogue.base import TrendingSource
from services.catalogue.trending_data import MIRROR_SOURCE, TrendingGameData

DEFAULT_CATEGORIES = ("Hardware", "Console", "Game")


class MirrorTrendingSource(TrendingSource):
    """Category/platform/family filters and the PC cutoff are applied in SQL"""

    key = MIRROR_SOURCE

    def fetch(self, query, options=None) -> List[TrendingGameData]:
        limit = int(query or 0)
        if limit <= 0:
            return []

        games = TheGamesDbMirrorRepository.catalogue_candidates(
            categories=self.source.categories or DEFAULT_CATEGORIES,
            platforms=self.source.platforms or None,
            families=self.source.families or None,
            offset=self.source.offset,
            limit=limit,
        )
        return [TrendingGameData.from_mirror(game) for game in games]
