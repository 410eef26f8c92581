"""
GiantBomb API client shared by the catalogue importer, enrichment and media
"""
from typing import Dict, List, Optional, Tuple

from services.http_client import build_client
from utils import data_get

GIANTBOMB_BASE_URL = "https://www.giantbomb.com/api"

SEARCH_FIELDS = [
    "id",
    "name",
    "deck",
    "original_release_date",
    "expected_release_year",
    "expected_release_month",
    "expected_release_day",
    "site_detail_url",
    "platforms",
    "genres",
    "aliases",
    "image",
    "images",
    "videos",
    "original_game_rating",
    "number_of_user_reviews",
]


class GiantBombClient:
    """
    ``search()`` results are cached in-process, keyed by
    ``(query, resources, limit)``, for the lifetime of the client. One job run
    builds one client, so repeated lookups inside a run cost one call.
    """

    def __init__(self, api_key: Optional[str], base_url: Optional[str] = None, config=None, limiter=None, http=None, timeout: int = 10):
        self.api_key = api_key
        self.http = http or build_client(
            "giantbomb", base_url or GIANTBOMB_BASE_URL, config=config, limiter=limiter, timeout=timeout
        )
        self._search_cache: Dict[Tuple[str, str, int], List[dict]] = {}

    def enabled(self) -> bool:
        return bool(self.api_key and str(self.api_key).strip())

    def _params(self, **extra):
        params = {"api_key": self.api_key, "format": "json"}
        params.update({k: v for k, v in extra.items() if v is not None and v != ""})
        return params

    def search(self, query: str, resources: str = "game", limit: int = 5, field_list=None) -> List[dict]:
        """Raises ProviderException on transport failure; callers decide whether that is soft"""
        query = (query or "").strip()
        if not query or not self.enabled():
            return []

        cache_key = (query.lower(), resources, int(limit))
        if cache_key in self._search_cache:
            return self._search_cache[cache_key]

        payload = self.http.get_json(
            "/search/",
            params=self._params(
                query=query,
                resources=resources,
                limit=limit,
                field_list=",".join(field_list or SEARCH_FIELDS),
            ),
        )
        results = data_get(payload, "results", [])
        results = [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []
        self._search_cache[cache_key] = results
        return results

    def games(self, limit: int = 100, sort: str = None, filter_: str = None, field_list=None) -> List[dict]:
        payload = self.http.get_json(
            "/games/",
            params=self._params(
                limit=max(1, min(100, int(limit))),
                sort=sort,
                filter=filter_,
                field_list=",".join(field_list or SEARCH_FIELDS),
            ),
        )
        results = data_get(payload, "results", [])
        return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []
