"""
Product media aggregator: ask every enabled media provider, cache what
they return in Redis, and upsert ProductMedia rows.
"""
from typing import Dict, List, Optional, Tuple

import structlog

from db import atomic
from exceptions import RateLimited
from redis_cache import cache_get_json, cache_set_json, make_cache_key
from repositories.media_repository import MediaRepository
from services.media.media_data import ProductMediaData
from services.providers import ProviderRegistry
from utils import now_utc

logger = structlog.get_logger("media")


class ProductMediaAggregator:
    def __init__(self, registry: ProviderRegistry, cache_ttl: int = 3600):
        self.registry = registry
        self.cache_ttl = cache_ttl

    @staticmethod
    def cache_key(product, provider: str, context: Optional[Dict] = None) -> str:
        context = context or {}
        return make_cache_key(
            "media",
            provider,
            {
                "product": product.id,
                "provider": provider,
                "query": str(context.get("query") or ""),
                "resource": str(context.get("resource") or ""),
            },
        )

    def collect(self, product, context: Optional[Dict] = None) -> List[ProductMediaData]:
        results, denied = self._gather(product, context)
        if denied is not None:
            raise denied
        return results

    def _gather(self, product, context: Optional[Dict] = None) -> Tuple[List[ProductMediaData], Optional[RateLimited]]:
        """
        Ask every enabled provider. A rate-limit denial does not stop the
        others; the first one is handed back so the caller can re-queue.
        """
        results: List[ProductMediaData] = []
        denied = None
        for provider in self.registry:
            if not provider.enabled():
                continue

            key = self.cache_key(product, provider.key, context)
            cached = cache_get_json(key)
            if cached is not None:
                results.extend(ProductMediaData.from_dict(item) for item in cached if isinstance(item, dict))
                continue

            try:
                items = list(provider.fetch(product, context) or [])
            except RateLimited as e:
                logger.info(
                    "media.provider_rate_limited",
                    provider=provider.key,
                    product_id=product.id,
                    retry_after=e.retry_after,
                )
                denied = denied or e
                continue
            except Exception as e:
                logger.warning("media.provider_failed", provider=provider.key, product_id=product.id, error=str(e))
                continue

            cache_set_json(key, [item.to_dict() for item in items], ttl=self.cache_ttl)
            results.extend(items)
        return results, denied

    def fetch_and_store(self, product, context: Optional[Dict] = None) -> List[ProductMediaData]:
        results, denied = self._gather(product, context)
        if results:
            fetched_at = now_utc()
            with atomic():
                for item in results:
                    MediaRepository.upsert(
                        product.id, item.source, item.storage_id(), fetched_at=fetched_at, **item.model_attributes()
                    )
            logger.info("media.product_assets_persisted", product_id=product.id, count=len(results))

        if denied is not None:
            raise denied
        return results


def build_media_aggregator(config, limiter=None) -> ProductMediaAggregator:
    from services.media.giantbomb_media import GiantBombMediaProvider
    from services.media.rawg_media import RawgMediaProvider
    from services.media.thegamesdb_media import TheGamesDbMediaProvider

    media = config.media
    providers = []
    for cls in (RawgMediaProvider, GiantBombMediaProvider, TheGamesDbMediaProvider):
        provider_config = media.providers.get(cls.key)
        if provider_config is None or not provider_config.enabled:
            continue
        if cls is TheGamesDbMediaProvider:
            providers.append(cls(provider_config))
        else:
            providers.append(cls(provider_config, config=config, limiter=limiter, timeout=media.http_timeout))

    return ProductMediaAggregator(ProviderRegistry(providers), cache_ttl=media.cache_ttl)
