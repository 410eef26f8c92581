"""
Price provider contract.

``fetch_deals(options)`` returns::

    {"results": [{"game": {...}, "deals": [deal, ...]}, ...], "meta": {...}}

where a deal is ``{deal_id, store_id, sale_price, normal_price, currency,
region_code, last_change, extras}``. Transport failures raise
ProviderException; the manager records them on the ingest snapshot.
"""
from abc import abstractmethod
from typing import Any, Dict, List, Optional

from services.http_client import build_client
from services.providers import ProviderClient
from settings import PricingProviderConfig
from utils import isoformat, now_utc


class PriceProvider(ProviderClient):
    default_base_url = ""

    def __init__(self, provider_config: Optional[PricingProviderConfig] = None, http=None, config=None, limiter=None):
        self.provider_config = provider_config or PricingProviderConfig(key=self.key)
        self.http = http
        if self.http is None and self.default_base_url:
            self.http = build_client(
                self.key,
                self.provider_config.base_url or self.default_base_url,
                config=config,
                limiter=limiter,
                timeout=self.provider_config.timeout,
            )

    def enabled(self) -> bool:
        return bool(self.provider_config.enabled)

    def fetch(self, query, options=None) -> List[Dict[str, Any]]:
        return self.fetch_deals(options or {}).get("results", [])

    @abstractmethod
    def fetch_deals(self, options: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def empty_result(self, message: str, product_count: int = 0, **meta) -> Dict[str, Any]:
        return {
            "results": [],
            "meta": {
                "provider": self.key,
                "generated_at": isoformat(now_utc()),
                "product_count": product_count,
                "message": message,
                **meta,
            },
        }

    def result_meta(self, product_count: int, **meta) -> Dict[str, Any]:
        return {
            "provider": self.key,
            "generated_at": isoformat(now_utc()),
            "product_count": product_count,
            "stub": False,
            **meta,
        }
