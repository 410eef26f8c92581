"""
PriceCharting price provider: secondary-market loose/complete/new prices
"""
from typing import Any, Dict, List, Optional

import structlog

from exceptions import ProviderException
from services.pricing.base import PriceProvider
from utils import data_get, headline, is_blank, now_utc, parse_timestamp, to_float

logger = structlog.get_logger("price_ingest.pricecharting")

CONDITIONS = {
    "loose": ("loose-price", "loose-price-date"),
    "complete": ("complete-price", "complete-price-date"),
    "new": ("new-price", "new-price-date"),
}


class PriceChartingProvider(PriceProvider):
    key = "pricecharting"
    default_base_url = "https://www.pricecharting.com/api"

    def fetch_deals(self, options: Dict[str, Any]) -> Dict[str, Any]:
        token = options.get("token") or self.provider_config.token
        if is_blank(token):
            raise ProviderException("PriceCharting API token is required.", provider=self.key)

        catalog = normalize_catalog(options.get("catalog") or [])
        if not catalog:
            return self.empty_result("No PriceCharting catalog entries configured.")

        store_map = options.get("store_map") if isinstance(options.get("store_map"), dict) else {}
        region_codes = list(dict.fromkeys(r for r in (self._region_code(c) for c in store_map.values()) if r)) or ["US"]

        results = []
        for entry in catalog:
            try:
                result = self._ingest_entry(token, entry, store_map)
            except ProviderException as e:
                logger.warning(
                    "price_ingest.pricecharting_entry_failed", slug=entry["product_slug"], error=e.message
                )
                continue
            if result:
                results.append(result)

        return {"results": results, "meta": self.result_meta(len(catalog), regions=region_codes)}

    def _ingest_entry(self, token, entry, store_map) -> Optional[dict]:
        product_id = self.resolve_product_id(token, entry)
        if product_id is None:
            logger.info("price_ingest.pricecharting_product_unresolved", slug=entry["product_slug"])
            return None

        payload = self.http.get_json("/product", params={"t": token, "id": product_id})
        product = data_get(payload, "product")
        if not isinstance(product, dict):
            logger.info("price_ingest.pricecharting_invalid_product_payload", product_id=product_id)
            return None

        deals = self.transform_prices(product, store_map)
        if not deals:
            return None

        return {
            "game": {
                "title": entry["title"],
                "slug": entry["product_slug"],
                "platform": entry["platform"],
                "category": entry["category"],
                "metadata": {
                    k: v
                    for k, v in {
                        "source": "pricecharting",
                        "pricecharting_id": product.get("id") or product_id,
                        "console_name": product.get("console-name"),
                    }.items()
                    if v
                },
            },
            "deals": deals,
        }

    def resolve_product_id(self, token, entry) -> Optional[str]:
        if entry.get("product_id"):
            return entry["product_id"]

        query = entry.get("search") or entry["title"]
        if not query:
            return None

        payload = self.http.get_json("/products", params={"t": token, "q": query})
        if not isinstance(payload, dict):
            raise ProviderException("PriceCharting search payload was invalid.", provider=self.key)

        products = [p for p in payload.get("products") or [] if isinstance(p, dict)]
        if not products:
            return None

        title = entry["title"].lower()
        platform = entry["platform"].lower()

        def matches(product):
            name = str(product.get("product-name") or product.get("name") or "").lower()
            console = str(product.get("console-name") or "").lower()
            return name == title or title in name or platform in console

        match = next((p for p in products if matches(p)), products[0])
        found = match.get("product-id") or match.get("id")
        return str(found) if found is not None and str(found) else None

    def transform_prices(self, product: dict, store_map: dict) -> List[dict]:
        deals = []
        for condition, (price_key, date_key) in CONDITIONS.items():
            amount = to_float(product.get(price_key))
            if not amount or amount <= 0:
                continue

            store_config = store_map.get(condition)
            store_id = self._store_id(store_config, condition)
            changed = parse_timestamp(product.get(date_key)) or now_utc()
            deals.append(
                {
                    "deal_id": f"pricecharting:{condition}:{product.get('id') or store_id}",
                    "store_id": store_id,
                    "sale_price": round(amount, 2),
                    "normal_price": round(amount, 2),
                    "currency": str(product.get("currency-code") or "USD").upper(),
                    "region_code": (self._region_code(store_config) or "US").upper(),
                    "last_change": int(changed.timestamp()),
                    "extras": {"condition": condition, "raw_product": product},
                }
            )
        return deals

    @staticmethod
    def _store_id(store_config, condition) -> str:
        store_id = store_config.get("store_id") if isinstance(store_config, dict) else store_config
        if isinstance(store_id, str) and store_id:
            return store_id
        return f"pricecharting_{condition}_usd"

    @staticmethod
    def _region_code(store_config) -> Optional[str]:
        if isinstance(store_config, dict) and store_config.get("region_code"):
            return str(store_config["region_code"])
        return None


def normalize_catalog(catalog) -> List[dict]:
    entries = []
    for entry in catalog or []:
        if not isinstance(entry, dict):
            continue
        slug = str(entry.get("product_slug") or entry.get("slug") or "")
        if not slug:
            continue
        product_id = entry.get("product_id")
        entries.append(
            {
                "product_slug": slug,
                "title": str(entry.get("title") or headline(slug)),
                "platform": str(entry.get("platform") or "Multi-platform"),
                "category": str(entry.get("category") or "Physical"),
                "product_id": str(product_id) if product_id not in (None, "") else None,
                "search": entry.get("search") or entry.get("title") or slug,
            }
        )
    return entries
