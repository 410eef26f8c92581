"""
Media provider contract
"""
from typing import List

from services.providers import ProviderClient
from settings import MediaProviderConfig


class MediaProvider(ProviderClient):
    """``fetch(product, context)`` returns ProductMediaData for one product"""

    def __init__(self, provider_config=None, http=None):
        self.provider_config = provider_config or MediaProviderConfig(key=self.key)
        self.options = dict(self.provider_config.options or {})
        self.http = http

    def enabled(self) -> bool:
        return bool(self.provider_config.enabled)

    def option(self, name, default=None):
        value = self.options.get(name)
        return default if value is None else value

    @staticmethod
    def query_for(product, context) -> str:
        return str((context or {}).get("query") or product.name or "").strip()

    @staticmethod
    def video_only(context) -> bool:
        context = context or {}
        return bool(context.get("video_only") or context.get("prefer_videos"))

    def fetch(self, query, options=None) -> List:
        raise NotImplementedError
