"""
Common shape for trending catalogue sources
"""
from typing import List, Optional

from services.providers import ProviderClient
from settings import SourceConfig


class TrendingSource(ProviderClient):
    """
    A catalogue source returns at most ``limit`` TrendingGameData entries.

    ``fetch(limit, {"window_days": n})``; API-backed sources fail soft on
    transport errors and only raise SourceUnavailable when nothing at all
    could be collected.
    """

    def __init__(self, source: Optional[SourceConfig] = None, http=None):
        self.source = source or SourceConfig(key=self.key)
        self.http = http

    def enabled(self) -> bool:
        return bool(self.source.enabled)

    def window_days(self, options, default: int = 7) -> int:
        value = (options or {}).get("window_days")
        return int(value) if value else default

    def fetch(self, query, options=None) -> List:
        raise NotImplementedError
