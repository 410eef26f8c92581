"""
IsThereAnyDeal price provider: plain lookup, then per-region prices
"""
from typing import Any, Dict, List, Optional

import structlog

from exceptions import ProviderException
from services.pricing.base import PriceProvider
from services.pricing.regions import cheapest_per_store, distinct, merge_store_maps, normalize_store_map
from utils import data_get, headline, is_blank, slugify, to_float, to_int, now_utc

logger = structlog.get_logger("price_ingest.itad")


class IsThereAnyDealProvider(PriceProvider):
    key = "itad"
    default_base_url = "https://api.isthereanydeal.com"

    def fetch_deals(self, options: Dict[str, Any]) -> Dict[str, Any]:
        api_key = options.get("api_key") or self.provider_config.api_key
        if is_blank(api_key):
            raise ProviderException("IsThereAnyDeal API key is required.", provider=self.key)

        requests = [r for r in options.get("requests") or [] if isinstance(r, dict) and self._has_lookup(r)]
        if not requests:
            return self.empty_result("No IsThereAnyDeal plains or titles were provided.")

        global_store_map = normalize_store_map(options.get("store_map"))
        results = []
        for request in requests:
            plain = self.resolve_plain(api_key, request)
            if not plain:
                continue

            regions = normalize_regions(request.get("regions") or options.get("default_regions") or [])
            if not regions:
                continue

            store_map = merge_store_maps(global_store_map, normalize_store_map(request.get("store_map")))
            deals = []
            for region in regions:
                payload = self.request_prices(api_key, plain, region)
                deals.extend(self.transform_offers(payload, plain, region, store_map))

            deals = cheapest_per_store(deals)
            if deals:
                results.append({"game": self.describe(request, plain, deals), "deals": deals})

        return {"results": results, "meta": self.result_meta(len(requests))}

    @staticmethod
    def _has_lookup(request) -> bool:
        return not (
            is_blank(request.get("plain")) and is_blank(request.get("title")) and is_blank(data_get(request, "product.title"))
        )

    def resolve_plain(self, api_key, request) -> Optional[str]:
        plain = request.get("plain")
        if isinstance(plain, str) and plain:
            return slugify(plain)

        title = request.get("title") or data_get(request, "product.title")
        if not isinstance(title, str) or is_blank(title):
            return None

        payload = self.http.get_json("/v02/search/search/", params={"key": api_key, "q": title})
        if not isinstance(payload, dict):
            raise ProviderException("IsThereAnyDeal search payload was invalid.", provider=self.key)

        candidates = [r for r in data_get(payload, "data.results", []) or [] if isinstance(r, dict)]
        match = next((r for r in candidates if r.get("title") == title), None) or (candidates[0] if candidates else None)
        resolved = match.get("plain") if match else None
        return resolved if isinstance(resolved, str) else None

    def request_prices(self, api_key, plain, region) -> dict:
        payload = self.http.get_json(
            "/v01/game/prices/",
            params={"key": api_key, "plains": plain, "country": region["country"], "region": region["region"]},
        )
        if not isinstance(payload, dict):
            raise ProviderException("IsThereAnyDeal price payload was invalid.", provider=self.key)
        return payload

    def transform_offers(self, payload, plain, region, store_map) -> List[dict]:
        offers = data_get(payload, f"data.{plain}.list", [])
        if not isinstance(offers, list):
            return []

        deals = []
        currency = region["currency"]
        for offer in offers:
            if not isinstance(offer, dict):
                continue
            store_slug = str(data_get(offer, "shop.slug") or data_get(offer, "shop.id") or "").lower()
            if not store_slug:
                continue

            sale_price = to_float(offer.get("price_new")) or 0.0
            if sale_price <= 0:
                continue
            normal_price = to_float(offer.get("price_old")) or sale_price

            store = store_map.get(store_slug, {}).get(currency) or {
                "store_id": f"itad_{store_slug}_{currency.lower()}",
                "region_code": region["region_code"],
                "currency": currency,
            }
            deals.append(
                {
                    "deal_id": f"itad:{plain}:{store_slug}:{currency.lower()}",
                    "store_id": store["store_id"],
                    "sale_price": round(sale_price, 2),
                    "normal_price": round(normal_price, 2),
                    "currency": store.get("currency") or currency,
                    "region_code": store.get("region_code") or region["region_code"],
                    "last_change": to_int(offer.get("timestamp") or offer.get("added")) or int(now_utc().timestamp()),
                    "extras": {
                        k: v
                        for k, v in {
                            "offer_url": offer.get("url"),
                            "shop": offer.get("shop"),
                            "price_cut": offer.get("price_cut"),
                            "drm": offer.get("drm"),
                        }.items()
                        if v not in (None, [], {})
                    },
                }
            )
        return deals

    @staticmethod
    def describe(request, plain, deals) -> dict:
        product = request.get("product") if isinstance(request.get("product"), dict) else {}
        title = product.get("title") or request.get("title")
        if not isinstance(title, str) or is_blank(title):
            title = headline(plain)

        return {
            "title": title,
            "slug": product.get("slug") or slugify(title),
            "platform": product.get("platform") or "PC",
            "category": product.get("category") or "Game",
            "metadata": {
                "source": "itad",
                "plain": plain,
                "currencies": distinct(deals, "currency"),
                "region_codes": distinct(deals, "region_code"),
            },
        }


def normalize_regions(regions) -> List[dict]:
    """Uppercase currency/region code, lowercase country/area; dedup on currency:country:area"""
    normalized = []
    seen = set()
    for region in regions or []:
        if not isinstance(region, dict):
            continue
        currency = str(region.get("currency") or "USD").upper()
        country = str(region.get("country") or "us").lower()
        area = str(region.get("region") or country).lower()
        key = f"{currency}:{country}:{area}"
        if key in seen:
            continue
        seen.add(key)
        normalized.append(
            {
                "currency": currency,
                "country": country,
                "region": area,
                "region_code": str(region.get("region_code") or country).upper(),
            }
        )
    return normalized
