"""
Shared outbound HTTP client for provider APIs
"""
import time
import logging
from typing import Any, Callable, Dict, Optional

import requests

from constants import USER_AGENT
from exceptions import ProviderException, RateLimited
from metrics import provider_requests_total, provider_request_duration_seconds
from utils import sanitize_sensitive_data

logger = logging.getLogger("main")

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class ProviderHttpClient:
    """
    Thin wrapper around ``requests.Session`` for one provider.

    Each call gets a bounded timeout and a small fixed-delay retry, separate
    from job-level backoff. When a ``limiter`` is given every attempt first
    takes a token; short waits are slept off, longer ones raise RateLimited
    so the job can re-queue itself.
    """

    def __init__(
        self,
        provider: str,
        base_url: str = "",
        timeout: int = 10,
        attempts: int = 2,
        retry_delay: float = 0.3,
        headers: Optional[Dict[str, str]] = None,
        limiter=None,
        limit=None,
        max_wait: float = 5.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.attempts = max(1, min(3, int(attempts)))
        self.retry_delay = retry_delay
        self.limiter = limiter
        self.limit = limit
        self.max_wait = max_wait
        self.sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
        if headers:
            self.session.headers.update(headers)

    def url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    def _throttle(self):
        """Take one token, sleeping off short waits"""
        if self.limiter is None or self.limit is None:
            return

        waited = 0.0
        while True:
            decision = self.limiter.attempt(self.provider, self.limit.max_rps, self.limit.burst)
            if decision.allowed:
                return
            if waited + decision.retry_after > self.max_wait:
                raise RateLimited(self.provider, decision.retry_after)
            self.sleep(decision.retry_after)
            waited += decision.retry_after

    def request(self, method: str, path: str, params=None, headers=None, ok_statuses=(), **kwargs) -> requests.Response:
        """
        Issue one request with retry.

        Returns the response for 2xx and for any status in ``ok_statuses``
        (e.g. 304). Everything else ends in ProviderException.
        """
        url = self.url(path)
        last_error = None

        for attempt in range(1, self.attempts + 1):
            self._throttle()
            start = time.time()
            try:
                response = self.session.request(
                    method, url, params=params, headers=headers, timeout=self.timeout, **kwargs
                )
            except requests.RequestException as e:
                provider_requests_total.labels(provider=self.provider, status="error").inc()
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"{self.provider} request error ({attempt}/{self.attempts}) {url} "
                    f"{sanitize_sensitive_data(params or {})}: {e}"
                )
            else:
                provider_request_duration_seconds.labels(provider=self.provider).observe(time.time() - start)
                provider_requests_total.labels(provider=self.provider, status=str(response.status_code)).inc()

                if response.ok or response.status_code in ok_statuses:
                    return response

                last_error = f"status {response.status_code}"
                if response.status_code not in RETRYABLE_STATUSES:
                    break
                logger.warning(f"{self.provider} returned {response.status_code} ({attempt}/{self.attempts}) {url}")

            if attempt < self.attempts:
                self.sleep(self.retry_delay)

        raise ProviderException(f"{self.provider} request to {url} failed: {last_error}", provider=self.provider)

    def get(self, path: str, params=None, headers=None, ok_statuses=()) -> requests.Response:
        return self.request("GET", path, params=params, headers=headers, ok_statuses=ok_statuses)

    def get_json(self, path: str, params=None, headers=None) -> Any:
        """GET and decode JSON. An undecodable body counts as no data (None)."""
        response = self.get(path, params=params, headers=headers)
        try:
            return response.json()
        except ValueError:
            logger.warning(f"{self.provider} returned a non-JSON body for {self.url(path)}")
            return None


def build_client(provider: str, base_url: str, config=None, limiter=None, **kwargs) -> ProviderHttpClient:
    """Client wired to the provider's token bucket from ``config.providers``"""
    limit = config.providers.limit_for(provider) if config is not None else None
    return ProviderHttpClient(provider, base_url, limiter=limiter, limit=limit, **kwargs)
