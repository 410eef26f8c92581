"""
Store-map and region helpers shared by the price providers
"""
from typing import Dict, Iterable, List


def normalize_store_map(store_map) -> Dict[str, Dict[str, dict]]:
    """
    ``{"Steam": {"usd": {"store_id": "steam_us"}}}`` ->
    ``{"steam": {"USD": {"store_id": "steam_us", "region_code": "GLOBAL", "currency": "USD"}}}``.
    Stores without a single usable store_id are dropped.
    """
    normalized = {}
    if not isinstance(store_map, dict):
        return normalized

    for store_name, currencies in store_map.items():
        if not isinstance(currencies, dict):
            continue
        entries = {}
        for currency, config in currencies.items():
            if not isinstance(config, dict) or not config.get("store_id"):
                continue
            code = str(currency).upper()
            entries[code] = {
                "store_id": str(config["store_id"]),
                "region_code": str(config.get("region_code") or "GLOBAL").upper(),
                "currency": code,
            }
        if entries:
            normalized[str(store_name).lower()] = entries
    return normalized


def merge_store_maps(base: dict, override: dict) -> dict:
    merged = {store: dict(currencies) for store, currencies in base.items()}
    for store, currencies in override.items():
        merged.setdefault(store, {}).update(currencies)
    return merged


def cheapest_per_store(deals: Iterable[dict]) -> List[dict]:
    """Keep the lowest ``sale_price`` deal for each store_id, in first-seen store order"""
    best: Dict[str, dict] = {}
    for deal in deals:
        if not deal:
            continue
        current = best.get(deal["store_id"])
        if current is None or deal["sale_price"] < current["sale_price"]:
            best[deal["store_id"]] = deal
    return list(best.values())


def distinct(deals: Iterable[dict], key: str) -> List[str]:
    return list(dict.fromkeys(d[key] for d in deals if d.get(key)))
