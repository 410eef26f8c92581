"""
Storefronts without a public price API. Each returns an empty result set
whose meta describes what a live integration would need.
"""
from typing import Any, Dict

import structlog

from services.pricing.base import PriceProvider

logger = structlog.get_logger("price_ingest.stub")

SAMPLE_RESULT_SCHEMA = {
    "game": {
        "title": "Example Title",
        "slug": "example-title",
        "platform": "Platform",
        "category": "Game|Hardware",
        "external_id": "external-identifier",
    },
    "deals": [
        {
            "store_id": "store-identifier",
            "deal_id": "deal-identifier",
            "sale_price": "19.99",
            "normal_price": "59.99",
            "currency": "USD",
            "extras": {},
        }
    ],
}


class StorefrontStub(PriceProvider):
    provider_name = ""
    loggable_options = ()
    provider_meta: Dict[str, Any] = {}

    def fetch_deals(self, options: Dict[str, Any]) -> Dict[str, Any]:
        payload = {
            "results": [],
            "meta": {
                "provider": self.key,
                "provider_name": self.provider_name,
                "stub": True,
                "message": "Provider stub invoked; no live ingestion is available for this storefront.",
                "sample_result_schema": SAMPLE_RESULT_SCHEMA,
                **self.provider_meta,
            },
        }
        logger.info(
            "price_ingest.provider_stub_invoked",
            provider=self.key,
            options={k: options[k] for k in self.loggable_options if k in options},
        )
        return payload


class SteamStoreProvider(StorefrontStub):
    key = "steam_store"
    provider_name = "Steam Store"
    loggable_options = ("apps", "regions", "currencies")
    provider_meta = {
        "kind": "digital",
        "platforms": ["PC"],
        "supports_history": False,
        "notes": "Real-time store price per market via cc/currency params.",
    }


class PlayStationStoreProvider(StorefrontStub):
    key = "playstation_store"
    provider_name = "PlayStation Store"
    loggable_options = ("catalog_queries", "regions")
    provider_meta = {
        "kind": "digital",
        "platforms": ["PlayStation 4", "PlayStation 5"],
        "supports_history": False,
        "notes": "Storefront GraphQL is undocumented and locale specific.",
    }


class MicrosoftStoreProvider(StorefrontStub):
    key = "microsoft_store"
    provider_name = "Microsoft Store"
    loggable_options = ("product_ids", "markets")
    provider_meta = {
        "kind": "digital",
        "platforms": ["Xbox One", "Xbox Series X|S", "PC"],
        "supports_history": False,
        "notes": "Display catalog requires a market and product id per request.",
    }


class EbayBrowseProvider(StorefrontStub):
    key = "ebay_browse"
    provider_name = "eBay Browse"
    loggable_options = ("queries", "marketplaces")
    provider_meta = {
        "kind": "marketplace",
        "supports_history": False,
        "auth": "oauth_client_credentials",
        "notes": "Listings are third-party sellers; prices need condition filtering.",
    }
