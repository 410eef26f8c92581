"""
GiantBomb enrichment for one product
"""
import hashlib
from difflib import SequenceMatcher
from typing import List, Optional

import structlog

from constants import QUEUE_GIANTBOMB
from db import atomic
from exceptions import ProviderException
from identity import IdentityResolver, determine_platform_family, normalize_name
from jobs.base import IngestionJob
from repositories.product_repository import ProductRepository
from services.catalogue.trending_data import split_aliases
from services.giantbomb_api import GiantBombClient
from utils import data_get, date_from_parts, parse_date, pluck, unique

logger = structlog.get_logger("catalogue")

PROVIDER = "giantbomb"

ESRB_SCORES = {
    "EC": 70,
    "E": 75,
    "E10+": 78,
    "T": 82,
    "M": 88,
    "AO": 65,
}


def match_score(query: str, name: str) -> float:
    """Compared on normalized names: 3 when equal, 2 when the query is contained, else the similarity ratio"""
    query = normalize_name(query) or ""
    name = normalize_name(name) or ""
    if name == query:
        return 3.0
    if query and query in name:
        return 2.0
    return SequenceMatcher(None, query, name).ratio()


def best_match(query: str, results: List[dict]) -> Optional[dict]:
    candidates = [r for r in results or [] if isinstance(r, dict)]
    if not candidates:
        return None
    return max(candidates, key=lambda r: match_score(query, r.get("name") or ""))


def estimate_rating(payload: dict, current: float) -> float:
    """Average of the ESRB ratings GiantBomb lists, mapped onto 0..100"""
    scores = []
    for name in pluck(payload.get("original_game_rating"), "name"):
        code = str(name).upper().replace("ESRB:", "").strip()
        if code in ESRB_SCORES:
            scores.append(ESRB_SCORES[code])
    if not scores:
        return current
    return float(round(sum(scores) / len(scores)))


class EnrichGameJob(IngestionJob):
    name = "enrich_game"
    task_name = "tasks.enrich_game"
    queue = QUEUE_GIANTBOMB
    tries = 3
    backoff_schedule = [30, 90, 180]

    def __init__(self, context=None, client=None, resolver=None, **kwargs):
        super().__init__(context, **kwargs)
        self.client = client
        self.resolver = resolver or IdentityResolver()

    @classmethod
    def idempotency_key_for(cls, context):
        return f"enrich:{(context or {}).get('product_id')}"

    def build_client(self) -> GiantBombClient:
        media = self.config.media.providers.get(PROVIDER)
        source = self.config.catalogue.source(PROVIDER)
        api_key = (media.api_key if media else None) or source.api_key
        base_url = (media.base_url if media else None) or source.base_url
        # the job already holds this run's permit
        return GiantBombClient(api_key, base_url, config=self.config)

    def handle(self):
        self.acquire(PROVIDER)

        product = ProductRepository.get_by_id(self.context.get("product_id"))
        if product is None:
            return None

        media = self.config.media.providers.get(PROVIDER)
        client = self.client or self.build_client()
        if (media is not None and not media.enabled) or not client.enabled():
            logger.info("catalogue.enrich_skipped_due_to_missing_giantbomb", product_id=product.id)
            return None

        payload = self.lookup(client, product)
        if payload is None:
            logger.warning("catalogue.enrich_no_match", product_id=product.id)
            return None

        with atomic():
            self.apply(product, payload)

        self.dispatch_media(product)
        logger.info("catalogue.enriched", product_id=product.id, giantbomb_id=payload.get("id"))
        return product.id

    def search_terms(self, product) -> List[str]:
        terms = [
            data_get(product.metadata_json or {}, "sources.rawg.rawg_slug"),
            (product.external_ids or {}).get("rawg"),
            product.slug,
            product.name,
        ]
        return unique(str(t) for t in terms if t)

    def lookup(self, client: GiantBombClient, product) -> Optional[dict]:
        for term in self.search_terms(product):
            try:
                results = client.search(term, resources="game", limit=5)
            except ProviderException as e:
                logger.warning("catalogue.enrich_giantbomb_request_failed", query=term, error=e.message)
                continue
            match = best_match(term, results)
            if match is not None:
                return match
        return None

    def apply(self, product, payload: dict):
        platforms = pluck(payload.get("platforms"), "name")
        genres = pluck(payload.get("genres"), "name")
        aliases = split_aliases(payload.get("aliases"))

        self.resolver.merge_source(
            product,
            PROVIDER,
            {
                k: v
                for k, v in {
                    "id": payload.get("id"),
                    "site_detail_url": payload.get("site_detail_url"),
                    "aliases": aliases,
                    "platforms": platforms,
                    "genres": genres,
                    "image": data_get(payload, "image.original_url"),
                }.items()
                if v not in (None, "", [])
            },
        )
        self.resolver.merge_external_ids(product, {PROVIDER: payload.get("id")})

        if payload.get("deck"):
            product.synopsis = payload["deck"]

        if product.release_date is None:
            product.release_date = parse_date(payload.get("original_release_date")) or date_from_parts(
                payload.get("expected_release_year"),
                payload.get("expected_release_month"),
                payload.get("expected_release_day"),
            )

        if product.primary_platform_family is None and platforms:
            product.primary_platform_family = determine_platform_family(platforms[0])

        if (product.rating or 0) <= 0:
            product.rating = estimate_rating(payload, product.rating or 0.0)

        self.resolver.sync_platforms(product, platforms)
        self.resolver.sync_genres(product, genres)

        if payload.get("id") is not None:
            self.resolver.link_alias(product, PROVIDER, payload["id"], payload.get("name") or product.name)
            for alias in aliases:
                digest = hashlib.sha1(f"alias:{alias}".encode("utf-8")).hexdigest()
                self.resolver.link_alias(product, "alias", digest, alias)

    def dispatch_media(self, product):
        from jobs.fetch_media import FetchProductMediaJob

        self.dispatch(FetchProductMediaJob, {"product_id": product.id, "query": product.name, "resource": "game"})
