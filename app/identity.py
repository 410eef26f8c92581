"""
Cross-provider identity: normalized names, uid hashing, platform families
and the find-or-create/merge rules every ingestion path goes through.
"""
import hashlib
import re
from datetime import date
from typing import Iterable, Optional, Tuple

import structlog

from models.product import Product
from repositories.alias_repository import AliasRepository
from repositories.product_repository import ProductRepository
from repositories.taxonomy_repository import TaxonomyRepository
from utils import ascii_fold, isoformat, is_blank, now_utc, parse_date, slugify, unique

logger = structlog.get_logger("identity")

_BRACKETED = re.compile(r"\([^)]*\)|\[[^\]]*\]|\{[^}]*\}")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Checked in order, first hit wins
PLATFORM_FAMILY_RULES = [
    ("playstation", re.compile(r"playstation|\bps(\d|p\b|x\b|\s?vita|\b)")),
    ("xbox", re.compile(r"xbox")),
    ("nintendo", re.compile(r"nintendo|switch|\bwii|gamecube|game boy|\b3ds\b|\bn?ds\b|\bs?nes\b|\bn64\b")),
    ("retro", re.compile(r"pc engine|turbografx")),
    ("pc", re.compile(r"\bpc\b|windows|steam|linux|macos|macintosh|\bmac\b")),
    ("mobile", re.compile(r"mobile|android|\bios\b|iphone|ipad")),
    ("sega", re.compile(r"sega|genesis|dreamcast|saturn|mega drive|game gear")),
    ("arcade", re.compile(r"arcade|neo ?geo|\bmame\b")),
    ("retro", re.compile(r"commodore|atari|retro|amiga|\bmsx\b|intellivision|colecovision|zx spectrum|\b3do\b")),
]


def normalize_name(value) -> Optional[str]:
    """
    Dedup key for titles coming from different providers.

    ``"Pokémon Scarlet (Switch)"`` -> ``"pokemon scarlet"``. Never raises;
    returns None only when nothing alphanumeric is left.
    """
    if value is None:
        return None
    text = str(value)

    stripped = _NON_ALNUM.sub(" ", ascii_fold(_BRACKETED.sub(" ", text)).lower()).strip()
    if stripped:
        return stripped

    # the whole title was an annotation; keep it rather than lose the entry
    return _NON_ALNUM.sub(" ", ascii_fold(text).lower()).strip() or None


def compute_uid(title: str, release_date=None, platform_family: Optional[str] = None) -> str:
    """sha256 of ``title|release_date|family``, with ``unknown`` for missing parts"""
    normalized_title = " ".join(str(title or "").split()).lower()
    released = parse_date(release_date)
    payload = "|".join(
        [
            normalized_title,
            released.isoformat() if released else "unknown",
            platform_family or "unknown",
        ]
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def determine_platform_family(platform) -> Optional[str]:
    if not isinstance(platform, str) or not platform.strip():
        return None
    normalized = platform.lower()
    for family, pattern in PLATFORM_FAMILY_RULES:
        if pattern.search(normalized):
            return family
    return None


def is_excluded_pc_release(platform_family: Optional[str], release_date) -> bool:
    """PC titles released before 2015 are not ingested"""
    if platform_family != "pc":
        return False
    released = parse_date(release_date)
    return released is not None and released < date(2015, 1, 1)


class IdentityResolver:
    """
    Find-or-create Products and merge provider contributions into them.

    Display fields (name, platform, release date, family, category) are
    first-writer-wins; ``metadata.sources[provider]`` is replaced wholesale
    by each provider's latest contribution. Nothing here commits.
    """

    def resolve(
        self,
        name: str,
        release_date=None,
        platform: Optional[str] = None,
        slug: Optional[str] = None,
        category: str = "Game",
    ) -> Tuple[Optional[Product], bool]:
        """Return ``(product, created)``; ``(None, False)`` when no slug can be derived"""
        slug = slugify(slug or name)
        if not slug:
            return None, False

        family = determine_platform_family(platform)
        released = parse_date(release_date)
        uid = compute_uid(name, released, family)

        product = ProductRepository.find_for_identity(uid, slug)
        if product is not None:
            self.fill_display_fields(product, name, released, platform, family, category)
            if product.uid is None:
                product.uid = uid
            return product, False

        product = Product(
            uid=uid,
            slug=slug,
            name=name,
            platform=platform if platform else "Unknown",
            primary_platform_family=family,
            category=category,
            release_date=released,
            metadata_json={},
            external_ids={},
        )
        ProductRepository.add(product)
        logger.debug("identity.product_created", slug=slug, uid=uid, family=family)
        return product, True

    @staticmethod
    def fill_display_fields(product, name, release_date, platform, family, category=None):
        if is_blank(product.name) and name:
            product.name = name
        if (is_blank(product.platform) or product.platform == "Unknown") and platform:
            product.platform = platform
        if product.release_date is None and release_date is not None:
            product.release_date = release_date
        if product.primary_platform_family is None and family:
            product.primary_platform_family = family
        if is_blank(product.category) and category:
            product.category = category

    @staticmethod
    def merge_source(product, provider: str, payload: dict, platforms=(), genres=()):
        """Replace ``metadata.sources[provider]`` and union the platform/genre lists"""
        metadata = dict(product.metadata_json or {})
        sources = dict(metadata.get("sources") or {})
        sources[provider] = {**(payload or {}), "fetched_at": isoformat(now_utc())}
        metadata["sources"] = sources
        metadata["platforms"] = unique(list(metadata.get("platforms") or []) + list(platforms or []))
        metadata["genres"] = unique(list(metadata.get("genres") or []) + list(genres or []))
        ProductRepository.set_metadata(product, metadata)

    @staticmethod
    def merge_external_ids(product, external_ids: dict):
        cleaned = {k: str(v) for k, v in (external_ids or {}).items() if v is not None and str(v) != ""}
        if not cleaned:
            return
        ProductRepository.set_external_ids(product, {**(product.external_ids or {}), **cleaned})

    @staticmethod
    def sync_platforms(product, names: Iterable[str]):
        for name in names or []:
            if not isinstance(name, str) or not name.strip():
                continue
            code = slugify(name)[:32]
            if not code:
                continue
            family = determine_platform_family(name) or "pc"
            platform = TaxonomyRepository.upsert_platform(code, name.strip(), family)
            if platform not in product.platforms:
                product.platforms.append(platform)

    @staticmethod
    def sync_genres(product, names: Iterable[str]):
        for name in names or []:
            if not isinstance(name, str) or not name.strip():
                continue
            slug = slugify(name)
            if not slug:
                continue
            genre = TaxonomyRepository.upsert_genre(slug, name.strip())
            if genre not in product.genres:
                product.genres.append(genre)

    @staticmethod
    def link_alias(product, provider: str, provider_game_id, alias_title: Optional[str] = None):
        if provider_game_id is None or str(provider_game_id).strip() == "":
            return None
        return AliasRepository.upsert(provider, str(provider_game_id).strip(), product.id, alias_title or product.name)
