"""
TheGamesDB v1 API client.

Every call can carry an endpoint cache key; the ETag / Last-Modified seen
for that key are replayed as conditional headers and a ``304`` comes back
as ``None`` ("no changes"). Failures raise TheGamesDbApiException so the
sync jobs retry with backoff.
"""
import hashlib
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Dict, Iterable, Optional

import structlog

from exceptions import ProviderException, TheGamesDbApiException
from repositories.http_cache_repository import VendorHttpCacheRepository
from services.http_client import build_client
from utils import ensure_utc, sanitize_sensitive_data, to_int

logger = structlog.get_logger("thegamesdb")

PROVIDER_KEY = "thegamesdb"


class TheGamesDbApiClient:
    def __init__(self, tgdb_config, config=None, limiter=None, http=None):
        self.tgdb = tgdb_config
        headers = {"User-Agent": tgdb_config.user_agent} if tgdb_config.user_agent else None
        self.http = http or build_client(
            PROVIDER_KEY,
            tgdb_config.base_url,
            config=config,
            limiter=limiter,
            timeout=tgdb_config.timeout,
            headers=headers,
        )

    def resolve_api_key(self, use_private_key: bool = False) -> str:
        if use_private_key:
            keys = [self.tgdb.private_key]
        else:
            keys = [self.tgdb.public_key, self.tgdb.private_key]

        for key in keys:
            if isinstance(key, str) and key.strip():
                return key.strip()
        raise TheGamesDbApiException("A TheGamesDB API key is required.")

    def search_by_name(self, name: str, use_private_key=False, params=None, cache_key=None):
        query = {"name": name, **(params or {})}
        key = cache_key or "games.by_name:" + hashlib.md5(name.encode("utf-8")).hexdigest()
        return self.request("Games/ByGameName", query, use_private_key, key)

    def updates_since(self, since=None, params=None, cache_key=None):
        query = dict(params or {})
        since = ensure_utc(since)
        if since is not None:
            query["since"] = since.isoformat()
        return self.request("Games/Updates", query, False, cache_key or "games.updates")

    def by_ids(self, ids: Iterable, use_private_key=False, params=None, cache_key=None):
        filtered = []
        for value in ids or []:
            number = to_int(value)
            if number and number not in filtered:
                filtered.append(number)
        if not filtered:
            return None

        joined = ",".join(str(i) for i in filtered)
        query = {"id": joined, **(params or {})}
        key = f"{cache_key}:{hashlib.md5(joined.encode('utf-8')).hexdigest()}" if cache_key else None
        return self.request("Games/ByGameID", query, use_private_key, key)

    def request(self, endpoint: str, params: Dict[str, Any], use_private_key: bool, cache_key=None):
        query = {k: v for k, v in {**params, "apikey": self.resolve_api_key(use_private_key)}.items() if v not in (None, "", [])}

        headers = {}
        cached = VendorHttpCacheRepository.get(PROVIDER_KEY, cache_key) if cache_key else None
        if cached is not None:
            if cached.etag:
                headers["If-None-Match"] = cached.etag
            if cached.last_modified_at:
                headers["If-Modified-Since"] = format_datetime(ensure_utc(cached.last_modified_at), usegmt=True)

        try:
            response = self.http.get(endpoint.lstrip("/"), params=query, headers=headers, ok_statuses=(304,))
        except ProviderException as e:
            logger.warning(
                "thegamesdb.api_failure", endpoint=endpoint, query=sanitize_sensitive_data(query), error=e.message
            )
            raise TheGamesDbApiException(f"TheGamesDB API request failed: {e.message}")

        if response.status_code == 304:
            if cache_key:
                VendorHttpCacheRepository.touch(PROVIDER_KEY, cache_key)
            logger.debug("thegamesdb.not_modified", endpoint=endpoint, cache_key=cache_key)
            return None

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise TheGamesDbApiException("TheGamesDB API response payload was invalid.")

        if cache_key:
            VendorHttpCacheRepository.store(
                PROVIDER_KEY,
                cache_key,
                etag=response.headers.get("ETag"),
                last_modified_at=parse_last_modified(response.headers.get("Last-Modified")),
                metadata={"endpoint": endpoint, "request_query": sanitize_sensitive_data(query)},
            )

        return payload


def parse_last_modified(value) -> Optional[Any]:
    if not value:
        return None
    try:
        return ensure_utc(parsedate_to_datetime(value))
    except (TypeError, ValueError):
        return None
