"""
Targeted offer lookups for one product
"""
import structlog

from constants import QUEUE_OFFERS
from exceptions import ProviderException
from jobs.base import IngestionJob
from jobs.fetch_prices import FetchPricesJob
from repositories.product_repository import ProductRepository
from services.pricing.manager import PriceIngestionManager
from utils import now_utc

logger = structlog.get_logger("offers")

REGION_CURRENCIES = {"US": "USD", "GB": "GBP", "EU": "EUR", "CA": "CAD"}


class FetchOffersForProductJob(IngestionJob):
    """
    Build a per-provider request for the product and queue one
    FetchPricesJob per enabled provider, each behind its own token.
    """

    name = "fetch_offers_for_product"
    task_name = "tasks.fetch_offers_for_product"
    queue = QUEUE_OFFERS
    tries = 3
    backoff_schedule = [60]

    def regions(self):
        return [str(r).upper() for r in self.context.get("regions") or self.config.pricing.regions]

    def handle(self):
        product = ProductRepository.get_by_id(self.context.get("product_id"))
        if product is None:
            return []

        dispatched = []
        for provider, context in self.provider_contexts(product).items():
            self.acquire(provider)
            logger.info("offers.dispatch_fetch", provider=provider, product=product.id, slug=product.slug)
            window = f"product-{product.id}-{now_utc().date().isoformat()}"
            self.dispatch(FetchPricesJob, {"provider": provider, "window": window, **context})
            dispatched.append(provider)
        return dispatched

    def provider_contexts(self, product):
        pricing = self.config.pricing
        regions = self.regions()
        platform = product.platform or product.primary_platform_family or "pc"
        category = product.category or "Game"
        source = "FetchOffersForProductJob"
        contexts = {}

        nexarda_id = (product.external_ids or {}).get("nexarda")
        if pricing.is_enabled("nexarda") and nexarda_id:
            contexts["nexarda"] = {
                "source": source,
                "products": [
                    {
                        "id": nexarda_id,
                        "type": "game",
                        "title": product.name,
                        "slug": product.slug,
                        "platform": platform,
                        "category": category,
                        "regions": [
                            {"region_code": r, "currency": REGION_CURRENCIES[r]}
                            for r in regions
                            if r in REGION_CURRENCIES
                        ],
                    }
                ],
            }

        if pricing.is_enabled("itad"):
            contexts["itad"] = {
                "source": source,
                "requests": [
                    {
                        "title": product.name,
                        "plain": product.slug,
                        "product": {
                            "title": product.name,
                            "slug": product.slug,
                            "platform": platform,
                            "category": category,
                        },
                        "regions": [{"region_code": r, "country": r.lower()} for r in regions],
                    }
                ],
            }

        if pricing.is_enabled("pricecharting"):
            contexts["pricecharting"] = {
                "source": source,
                "catalog": [
                    {
                        "product_slug": product.slug,
                        "title": product.name,
                        "platform": platform,
                        "category": category,
                        "search": f"{product.name} {platform}",
                    }
                ],
            }

        stubs = {
            "steam_store": {"apps": []},
            "playstation_store": {"catalog_queries": [product.name]},
            "microsoft_store": {"product_ids": []},
            "nintendo_eshop": {"title_ids": []},
        }
        for provider, payload in stubs.items():
            if pricing.is_enabled(provider):
                contexts[provider] = {"source": source, **payload}

        return contexts


class FetchOffersJob(IngestionJob):
    """PriceCharting lookup for one product, then a series rebuild"""

    name = "fetch_offers"
    task_name = "tasks.fetch_offers"
    queue = QUEUE_OFFERS
    tries = 3
    backoff_schedule = [60]

    provider = "pricecharting"

    def __init__(self, context=None, manager=None, **kwargs):
        super().__init__(context, **kwargs)
        self.manager = manager

    @classmethod
    def idempotency_key_for(cls, context):
        return f"offers:{cls.provider}:{(context or {}).get('product_id')}"

    def handle(self):
        self.acquire(self.provider)

        product = ProductRepository.get_by_id(self.context.get("product_id"))
        if product is None:
            return None

        provider_config = self.config.pricing.provider(self.provider)
        if provider_config is None or not provider_config.enabled or not provider_config.token:
            logger.info(
                "offers.pricecharting_skipped",
                product_id=product.id,
                reason="provider_disabled_or_missing_token",
            )
            return None

        regions = list(self.context.get("regions") or ["US", "EU", "CA"])
        context = {
            "product_id": product.id,
            "regions": regions,
            "source": "FetchOffersJob",
            "catalog": [
                {
                    "product_slug": product.slug,
                    "title": product.name,
                    "platform": product.platform or product.primary_platform_family or "Unknown",
                    "category": product.category or "Game",
                    "search": product.name,
                }
            ],
        }

        manager = self.manager or PriceIngestionManager(self.config, limiter=self.limiter)
        try:
            snapshot = manager.ingest(self.provider, context)
        except ProviderException as e:
            logger.warning("offers.ingest_provider_error", product_id=product.id, provider=self.provider, error=e.message)
            raise
        except Exception as e:
            logger.error("offers.ingest_failed", product_id=product.id, provider=self.provider, error=str(e))
            raise

        from jobs.build_series import BuildSeriesJob

        self.dispatch(BuildSeriesJob, {"product_id": product.id})
        return snapshot.id if snapshot is not None else None
