"""
Check the outbound links stored for one product
"""
from typing import Any, Dict

import requests
import structlog

from constants import LINK_VERIFIER_USER_AGENT, QUEUE_VERIFY
from db import atomic
from jobs.base import IngestionJob
from repositories.media_repository import MediaRepository
from repositories.price_repository import PriceRepository
from utils import is_valid_url, isoformat, now_utc

logger = structlog.get_logger("verify_links")

MEDIA_LIMIT = 12
REGION_LIMIT = 8
PROBE_TIMEOUT = 8


def probe(url: str, session=None, timeout: int = PROBE_TIMEOUT) -> Dict[str, Any]:
    """
    HEAD the url, falling back to GET when HEAD is not allowed.

    Returns ``{status, code, checked_at, reason}`` where status is ``ok``,
    ``failed`` or ``error``. Never raises.
    """
    http = session or requests
    headers = {"User-Agent": LINK_VERIFIER_USER_AGENT}
    checked_at = isoformat(now_utc())
    try:
        response = http.head(url, headers=headers, timeout=timeout, allow_redirects=True)
        if response.status_code == 405:
            response = http.get(url, headers=headers, timeout=timeout, allow_redirects=True, stream=True)
            response.close()
    except requests.RequestException as e:
        return {"status": "error", "code": None, "checked_at": checked_at, "reason": str(e)}

    ok = 200 <= response.status_code < 400
    return {
        "status": "ok" if ok else "failed",
        "code": response.status_code,
        "checked_at": checked_at,
        "reason": None if ok else response.reason,
    }


class VerifyLinksJob(IngestionJob):
    name = "verify_links"
    task_name = "tasks.verify_links"
    queue = QUEUE_VERIFY
    tries = 3
    backoff_schedule = [45]

    def __init__(self, context=None, session=None, **kwargs):
        super().__init__(context, **kwargs)
        self.session = session

    @classmethod
    def idempotency_key_for(cls, context):
        return f"verify:{(context or {}).get('product_id')}"

    def handle(self):
        product_id = self.context.get("product_id")
        media_rows = MediaRepository.for_product(product_id, limit=MEDIA_LIMIT)
        regions = PriceRepository.sku_regions_for_product(product_id, limit=REGION_LIMIT)

        # probe before opening the transaction, rows are only written afterwards
        media_results = [(media, self.check(media.url)) for media in media_rows]
        region_results = []
        for region in regions:
            metadata = region.metadata_json or {}
            url = metadata.get("store_url") or metadata.get("url")
            if url:
                region_results.append((region, self.check(url)))

        with atomic():
            for media, result in media_results:
                media.metadata_json = {**(media.metadata_json or {}), "link_check": result}
            for region, result in region_results:
                region.metadata_json = {**(region.metadata_json or {}), "link_check": result}
                if result["status"] in ("failed", "error"):
                    region.is_active = False

        failures = sum(1 for _, r in media_results + region_results if r["status"] != "ok")
        logger.info(
            "verify_links.completed",
            product_id=product_id,
            media_checked=len(media_results),
            regions_checked=len(region_results),
            failures=failures,
        )
        return {"media": len(media_results), "regions": len(region_results), "failures": failures}

    def check(self, url) -> Dict[str, Any]:
        if not is_valid_url(url):
            return {"status": "invalid_url", "code": None, "checked_at": isoformat(now_utc()), "reason": "invalid url"}
        return probe(url, session=self.session)
