"""
Nintendo eShop price provider, one request per configured country
"""
from typing import Any, Dict, List

from exceptions import ProviderException
from services.pricing.base import PriceProvider
from utils import data_get, headline, now_utc, parse_timestamp, to_float


class NintendoEshopProvider(PriceProvider):
    key = "nintendo_eshop"
    default_base_url = "https://api.ec.nintendo.com/v1"

    def fetch_deals(self, options: Dict[str, Any]) -> Dict[str, Any]:
        catalog = normalize_catalog(options.get("catalog") or [])
        if not catalog:
            return self.empty_result("No Nintendo eShop catalog entries configured.")

        regions = normalize_countries(options.get("countries") or [])
        if not regions:
            return self.empty_result("No Nintendo eShop region definitions configured.", product_count=len(catalog))

        deals_by_slug: Dict[str, List[dict]] = {}
        for region in regions:
            payload = self.http.get_json(
                "/price",
                params={"country": region["country"], "lang": region["language"], "ids": ",".join(catalog)},
            )
            if not isinstance(payload, dict):
                raise ProviderException("Nintendo eShop price payload was invalid.", provider=self.key)

            for entry in payload.get("prices") or []:
                if not isinstance(entry, dict):
                    continue
                nsuid = str(entry.get("title_id") or entry.get("id") or "")
                record = catalog.get(nsuid)
                if record is None:
                    continue
                deal = build_deal(entry, nsuid, region)
                if deal:
                    deals_by_slug.setdefault(record["product_slug"], []).append(deal)

        results = []
        for record in catalog.values():
            deals = deals_by_slug.get(record["product_slug"])
            if not deals:
                continue
            results.append(
                {
                    "game": {
                        "title": record["title"],
                        "slug": record["product_slug"],
                        "platform": record["platform"],
                        "category": record["category"],
                        "metadata": {
                            "source": "nintendo_eshop",
                            "nsuid": record["nsuid"],
                            "regions": list(dict.fromkeys(d["region_code"] for d in deals)),
                        },
                    },
                    "deals": deals,
                }
            )

        return {"results": results, "meta": self.result_meta(len(catalog))}


def build_deal(entry, nsuid, region):
    regular = to_float(data_get(entry, "regular_price.amount"))
    if regular is None:
        return None

    sale = to_float(data_get(entry, "discount_price.amount"))
    sale_price = sale if sale and sale > 0 else regular
    currency = data_get(entry, "regular_price.currency") or region["currency"]
    changed = (
        parse_timestamp(data_get(entry, "discount_price.start_datetime"))
        or parse_timestamp(data_get(entry, "regular_price.start_datetime"))
        or now_utc()
    )
    return {
        "deal_id": f"eshop:{region['country'].lower()}:{nsuid}",
        "store_id": region["store_id"],
        "sale_price": round(sale_price, 2),
        "normal_price": round(regular, 2),
        "currency": str(currency).upper(),
        "region_code": region["region_code"],
        "last_change": int(changed.timestamp()),
        "extras": {"raw_price": entry, "country": region["country"], "language": region["language"]},
    }


def normalize_catalog(catalog) -> Dict[str, dict]:
    """Entries keyed by nsuid; entries missing an nsuid or slug are dropped"""
    records = {}
    for entry in catalog:
        if not isinstance(entry, dict):
            continue
        nsuid = str(entry.get("nsuid") or entry.get("title_id") or "")
        slug = str(entry.get("product_slug") or entry.get("slug") or "")
        if not nsuid or not slug:
            continue
        records[nsuid] = {
            "nsuid": nsuid,
            "product_slug": slug,
            "title": str(entry.get("title") or headline(slug)),
            "platform": str(entry.get("platform") or "Nintendo Switch"),
            "category": str(entry.get("category") or "Game"),
        }
    return records


def normalize_countries(countries) -> List[dict]:
    regions = []
    seen = set()
    for region in countries:
        if not isinstance(region, dict):
            continue
        country = str(region.get("country") or "US").upper()
        language = str(region.get("language") or "en").lower()
        if f"{country}:{language}" in seen:
            continue
        seen.add(f"{country}:{language}")
        regions.append(
            {
                "country": country,
                "language": language,
                "region_code": str(region.get("region_code") or country).upper(),
                "currency": str(region.get("currency") or "USD").upper(),
                "store_id": str(region.get("store_id") or f"nintendo_eshop_{country.lower()}"),
            }
        )
    return regions
