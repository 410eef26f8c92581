"""
Nexarda price provider: per-currency offers, cheapest per store
"""
from typing import Any, Dict, List

import structlog

from exceptions import ProviderException
from services.pricing.base import PriceProvider
from services.pricing.regions import cheapest_per_store, distinct, normalize_store_map
from utils import data_get, is_blank, now_utc, slugify, to_float

logger = structlog.get_logger("price_ingest.nexarda")


class NexardaPriceProvider(PriceProvider):
    key = "nexarda"
    default_base_url = "https://www.nexarda.com/api/v3"

    def fetch_deals(self, options: Dict[str, Any]) -> Dict[str, Any]:
        products = [p for p in options.get("products") or [] if isinstance(p, dict) and not is_blank(p.get("id"))]
        if not products:
            return self.empty_result("No NEXARDA products configured for ingestion.")

        store_map = normalize_store_map(options.get("store_map"))
        api_key = options.get("api_key") or self.provider_config.api_key

        results = []
        for product in products:
            regions = resolve_regions(product, options.get("default_regions") or [])
            if not regions:
                continue

            product_type = str(product.get("type") or "game")
            info: Dict[str, Any] = {}
            deals = []
            for region in regions:
                payload = self.request_prices(api_key, product_type, product["id"], region["currency"])
                if not info and isinstance(payload.get("info"), dict):
                    info = payload["info"]
                deals.extend(self.build_deals(payload, region, store_map, product_type, product["id"]))

            if deals:
                results.append({"game": self.describe(product, deals, options, info), "deals": deals})

        return {"results": results, "meta": self.result_meta(len(products))}

    def request_prices(self, api_key, product_type, product_id, currency) -> dict:
        params = {"type": product_type, "id": product_id, "currency": currency}
        if api_key:
            params["key"] = api_key
        payload = self.http.get_json("/prices", params=params)
        if not isinstance(payload, dict) or payload.get("success") is not True:
            raise ProviderException(f"Unexpected NEXARDA response for ID [{product_id}].", provider=self.key)
        return payload

    @staticmethod
    def build_deals(payload, region, store_map, product_type, product_id) -> List[dict]:
        offers = data_get(payload, "prices.list")
        if not isinstance(offers, list):
            return []

        currency = region["currency"].upper()
        deals = []
        for offer in offers:
            if not isinstance(offer, dict):
                continue
            sale_price = round(to_float(offer.get("price")) or 0.0, 2)
            if sale_price <= 0:
                continue

            store_name = str(data_get(offer, "store.name") or "")
            store = store_map.get(store_name.lower(), {}).get(currency) or {
                "store_id": region["store_id"],
                "region_code": region["region_code"],
                "currency": currency,
            }
            if not store.get("store_id"):
                continue

            normal_price = to_float(data_get(offer, "coupon.price_without")) or to_float(
                data_get(payload, "prices.highest")
            )
            if not normal_price or normal_price <= 0:
                normal_price = sale_price

            deals.append(
                {
                    "deal_id": f"nexarda:{product_type}:{product_id}:{currency.lower()}:{slugify(store_name or 'store')}",
                    "store_id": store["store_id"],
                    "sale_price": sale_price,
                    "normal_price": round(normal_price, 2),
                    "currency": str(store.get("currency") or currency).upper(),
                    "region_code": str(store.get("region_code") or region["region_code"]).upper(),
                    "last_change": int(now_utc().timestamp()),
                    "extras": {
                        k: v
                        for k, v in {
                            "offer_url": offer.get("url"),
                            "store": offer.get("store"),
                            "max_discount": data_get(payload, "prices.max_discount"),
                            "offers_considered": len(offers),
                        }.items()
                        if v
                    },
                }
            )
        return cheapest_per_store(deals)

    @staticmethod
    def describe(product, deals, options, info) -> dict:
        slug = resolve_slug(product, info)
        metadata = {
            "source": "nexarda",
            "nexarda_id": product["id"],
            "nexarda_slug": slug,
            "currencies": distinct(deals, "currency"),
            "region_codes": distinct(deals, "region_code"),
            "ingest_context": options.get("context"),
            "cover": info.get("cover"),
            "banner": info.get("banner"),
            "release_timestamp": info.get("release"),
        }
        return {
            "title": product.get("title") or info.get("name") or "Unknown Title",
            "slug": product.get("slug") or slug,
            "platform": product.get("platform") or "Unknown",
            "category": product.get("category") or "Game",
            "metadata": {k: v for k, v in metadata.items() if v not in (None, [])},
        }


def resolve_slug(product, info) -> str:
    if not is_blank(product.get("slug")):
        return str(product["slug"])
    info_slug = info.get("slug")
    if not is_blank(info_slug):
        return slugify(str(info_slug).rsplit("/", 1)[-1].replace("(", "").replace(")", ""))
    return slugify(product.get("title") or "unknown")


def resolve_regions(product, defaults) -> List[dict]:
    """Product regions first, then the defaults; one region per currency"""
    regions = []
    seen = set()
    for region in list(product.get("regions") or []) + list(defaults or []):
        if not isinstance(region, dict):
            continue
        currency = str(region.get("currency") or "USD").upper()
        region_code = str(region.get("region_code") or "US").upper()
        if currency in seen:
            continue
        seen.add(currency)
        regions.append(
            {
                "currency": currency,
                "region_code": region_code,
                "store_id": str(region.get("store_id") or f"nexarda_{currency.lower()}"),
            }
        )
    return regions
