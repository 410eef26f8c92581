"""
Price ingestion manager: run one price provider and persist its deals
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

import structlog

from db import atomic
from exceptions import ProviderException
from identity import IdentityResolver
from repositories.price_repository import PriceRepository
from repositories.product_repository import ProductRepository
from repositories.snapshot_repository import SnapshotRepository
from services.providers import ProviderRegistry
from utils import ensure_utc, is_blank, now_utc, slugify, to_float, to_int

logger = structlog.get_logger("price_ingest")

# Context keys that carry a per-run target list into the provider options
OPTION_OVERRIDES = ("games", "products", "requests", "catalog", "apps", "product_ids", "title_ids", "catalog_queries")


class PriceIngestionManager:
    """
    ``ingest()`` opens a ``price_ingest`` DatasetSnapshot, asks the provider
    for deals and writes Products, SkuRegions and RegionPrices in one
    transaction. Provider failures are recorded on the snapshot; anything
    else is recorded and re-raised so the job retries.
    """

    def __init__(self, config, registry: Optional[ProviderRegistry] = None, limiter=None, resolver=None):
        self.config = config
        self.registry = registry if registry is not None else build_price_registry(config, limiter)
        self.resolver = resolver or IdentityResolver()

    def provider_options(self, provider: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Configured options with the context's target lists layered on top"""
        provider_config = self.config.pricing.provider(provider)
        options = dict(provider_config.options) if provider_config else {}
        if provider_config is not None:
            for key in ("api_key", "token", "base_url"):
                value = getattr(provider_config, key)
                if value:
                    options[key] = value

        for key in OPTION_OVERRIDES:
            value = (context or {}).get(key)
            if isinstance(value, list):
                options[key] = value
        if context:
            options["context"] = context
        return options

    def ingest(self, provider: str, context: Optional[Dict[str, Any]] = None):
        provider_config = self.config.pricing.provider(provider)
        client = self.registry.get(provider)
        if provider_config is None or client is None:
            raise ProviderException(f"Unknown pricing provider [{provider}].", provider=provider)
        if not provider_config.enabled:
            raise ProviderException(f"Pricing provider [{provider}] is disabled.", provider=provider)

        PriceRepository.record_usage(provider)

        snapshot = SnapshotRepository.create(
            kind="price_ingest",
            provider=provider,
            status="running",
            started_at=now_utc(),
            context=dict(context or {}),
        )

        try:
            payload = client.fetch_deals(self.provider_options(provider, context))
            with atomic():
                row_count, region_ids = self._persist(provider, payload, snapshot.id)
        except ProviderException as e:
            logger.warning("price_ingest.provider_failed", provider=provider, snapshot_id=snapshot.id, error=e.message)
            return SnapshotRepository.update(
                snapshot.id, status="failed", finished_at=now_utc(), error_details=e.message
            )
        except Exception as e:
            SnapshotRepository.update(snapshot.id, status="failed", finished_at=now_utc(), error_details=str(e))
            logger.error("price_ingest.failed", provider=provider, snapshot_id=snapshot.id, error=str(e))
            raise

        logger.info("price_ingest.succeeded", provider=provider, snapshot_id=snapshot.id, rows=row_count)
        return SnapshotRepository.update(
            snapshot.id,
            status="succeeded",
            finished_at=now_utc(),
            row_count=row_count,
            context={
                **(snapshot.context or {}),
                "sku_region_ids": sorted(set(region_ids)),
                "meta": (payload or {}).get("meta"),
            },
        )

    def _persist(self, provider, payload, snapshot_id):
        row_count = 0
        region_ids = []

        results = (payload or {}).get("results") or []
        for result in results:
            if not isinstance(result, dict):
                continue

            product, created = self.find_or_create_product(result.get("game") or {}, provider)
            if created:
                logger.info("price_ingest.product_created", provider=provider, product_id=product.id, slug=product.slug)

            for deal in result.get("deals") or []:
                if not isinstance(deal, dict) or is_blank(deal.get("store_id")):
                    continue
                store = self.store_for(deal)
                sku_region = PriceRepository.upsert_sku_region(
                    product.id,
                    store["region_code"],
                    store["retailer"],
                    store["currency"],
                    sku=deal.get("deal_id"),
                    metadata=self._sku_metadata(deal, provider),
                )
                region_ids.append(sku_region.id)
                if self.persist_price(sku_region, deal, store["currency"]):
                    row_count += 1

        return row_count, region_ids

    def find_or_create_product(self, game: Dict[str, Any], provider: str):
        slug = game.get("slug") or slugify(game.get("title") or "")
        if not slug:
            raise ValueError("Pricing payload missing a resolvable product slug.")

        product = ProductRepository.get_by_slug(slug)
        created = False
        if product is None:
            product, created = self.resolver.resolve(
                game.get("title") or "Unknown Title",
                None,
                game.get("platform"),
                slug=slug,
                category=game.get("category") or "Game",
            )
        else:
            self.resolver.fill_display_fields(
                product, game.get("title"), None, game.get("platform"), None, game.get("category")
            )

        metadata = dict(product.metadata_json or {})
        providers = dict(metadata.get("providers") or {})
        providers[provider] = {**(providers.get(provider) or {}), **(game.get("metadata") or {})}
        metadata["providers"] = providers
        ProductRepository.set_metadata(product, metadata)
        return product, created

    def store_for(self, deal: Dict[str, Any]) -> Dict[str, str]:
        """Configured store entry for the deal, else one derived from the deal itself"""
        store_id = str(deal["store_id"])
        configured = self.config.pricing.stores.get(store_id) or {}
        return {
            "retailer": str(configured.get("retailer") or store_id),
            "region_code": str(configured.get("region_code") or deal.get("region_code") or "GLOBAL").upper(),
            "currency": str(configured.get("currency") or deal.get("currency") or "USD").upper()[:3],
        }

    @staticmethod
    def _sku_metadata(deal, provider):
        metadata = {"store_id": deal.get("store_id"), "last_deal_id": deal.get("deal_id"), "providers": [provider]}
        return {k: v for k, v in metadata.items() if v}

    @staticmethod
    def persist_price(sku_region, deal, currency) -> bool:
        sale_price = to_float(deal.get("sale_price")) or 0.0
        if sale_price <= 0:
            return False

        changed = to_int(deal.get("last_change"))
        recorded_at = datetime.fromtimestamp(changed, timezone.utc) if changed else now_utc()
        PriceRepository.add_price(
            sku_region,
            round(sale_price, 2),
            currency,
            normal_amount=to_float(deal.get("normal_price")),
            recorded_at=recorded_at,
            raw_payload=deal,
        )
        return True

    def select_next_provider(self, candidates: Iterable[str]) -> Optional[str]:
        """Least used today first, then least recently called, then by name"""
        enabled = [str(p) for p in candidates if self.config.pricing.is_enabled(str(p)) and str(p) in self.registry]
        if not enabled:
            return None

        epoch = datetime.fromtimestamp(0, timezone.utc)

        def usage_key(provider):
            usage = PriceRepository.usage(provider)
            daily = 0
            last = epoch
            if usage is not None:
                if usage.daily_window == now_utc().date():
                    daily = usage.daily_calls or 0
                last = ensure_utc(usage.last_called_at) or epoch
            return daily, last, provider

        return min(enabled, key=usage_key)

    def ingest_with_rotation(self, candidates: Iterable[str], context: Optional[Dict[str, Any]] = None):
        provider = self.select_next_provider(candidates)
        if provider is None:
            raise ProviderException("No enabled pricing providers available for rotation.")
        return self.ingest(provider, context)


def build_price_registry(config, limiter=None) -> ProviderRegistry:
    from services.pricing.itad import IsThereAnyDealProvider
    from services.pricing.nexarda_prices import NexardaPriceProvider
    from services.pricing.nintendo_eshop import NintendoEshopProvider
    from services.pricing.pricecharting import PriceChartingProvider
    from services.pricing.storefront_stubs import (
        EbayBrowseProvider,
        MicrosoftStoreProvider,
        PlayStationStoreProvider,
        SteamStoreProvider,
    )

    classes = [
        IsThereAnyDealProvider,
        PriceChartingProvider,
        NexardaPriceProvider,
        NintendoEshopProvider,
        SteamStoreProvider,
        PlayStationStoreProvider,
        MicrosoftStoreProvider,
        EbayBrowseProvider,
    ]
    return ProviderRegistry(
        [cls(config.pricing.provider(cls.key), config=config, limiter=limiter) for cls in classes]
    )
