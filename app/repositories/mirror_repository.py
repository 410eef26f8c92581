"""
Repository for the TheGamesDB local mirror and its sync cursors
"""

from datetime import date

from sqlalchemy import case, func, or_

from constants import PC_CUTOFF_DATE
from db import db
from models.mirror_game import TheGamesDbGame
from models.vendor_sync_state import VendorSyncState
from utils import now_utc, parse_date, slugify, isoformat, to_int, extract_strings

PROVIDER_KEY = "thegamesdb"

# LIKE patterns used when narrowing the mirror by platform family
FAMILY_PATTERNS = {
    "nintendo": ["%Nintendo%", "%Switch%", "%Wii%", "%3DS%", "%DS%", "%Game Boy%", "%GameCube%"],
    "playstation": ["%PlayStation%", "%PS Vita%", "%PSP%"],
    "xbox": ["%Xbox%"],
    "pc": ["%PC%", "%Windows%", "%Mac%", "%Linux%"],
    "sega": ["%Sega%", "%Genesis%", "%Dreamcast%", "%Saturn%", "%Mega Drive%"],
    "mobile": ["%Android%", "%iOS%"],
    "arcade": ["%Arcade%", "%Neo Geo%"],
    "retro": ["%Atari%", "%Commodore%", "%Amiga%", "%NES%", "%Intellivision%", "%ColecoVision%", "%MSX%"],
}


def pc_policy_clause():
    """PC releases before the cutoff are never surfaced from the mirror"""
    cutoff = date.fromisoformat(PC_CUTOFF_DATE)
    return or_(
        TheGamesDbGame.platform.is_(None),
        func.lower(TheGamesDbGame.platform).notlike("%pc%"),
        TheGamesDbGame.release_date >= cutoff,
    )


class TheGamesDbMirrorRepository:
    """Repository for TheGamesDbGame rows keyed by ``external_id``"""

    @staticmethod
    def get(external_id):
        return TheGamesDbGame.query.filter_by(external_id=int(external_id)).first()

    @staticmethod
    def upsert_game(attributes):
        """
        Insert or update one mirrored game.

        ``external_id`` (or ``id``) and a title are required; the slug is
        derived from the title when missing. Only flushes.
        """
        external_id = to_int(attributes.get("external_id") or attributes.get("id")) or 0
        if external_id < 1:
            raise ValueError("TheGamesDB game payload is missing an external_id.")

        title = attributes.get("title") or attributes.get("game_title")
        if not isinstance(title, str) or not title.strip():
            raise ValueError("TheGamesDB game payload is missing a title.")
        title = title.strip()

        slug = attributes.get("slug")
        if not isinstance(slug, str) or not slug.strip():
            slug = slugify(title)

        game = TheGamesDbMirrorRepository.get(external_id)
        if game is None:
            game = TheGamesDbGame(external_id=external_id)
            db.session.add(game)

        game.title = title[:255]
        game.slug = slug
        game.platform = attributes.get("platform")
        game.category = attributes.get("category")
        game.players = to_int(attributes.get("players"))
        game.genres = extract_strings(attributes.get("genres"))
        game.developer = attributes.get("developer")
        game.publisher = attributes.get("publisher")
        game.release_date = parse_date(attributes.get("release_date"))
        game.image_url = attributes.get("image_url")
        game.thumb_url = attributes.get("thumb_url")
        game.metadata_json = attributes.get("metadata")
        game.last_synced_at = attributes.get("last_synced_at") or now_utc()

        db.session.flush()
        return game

    @staticmethod
    def search(query_text, filters=None, limit=None):
        normalized = (query_text or "").strip()
        if not normalized:
            return []

        slug = slugify(normalized)
        query = TheGamesDbGame.query.filter(
            or_(
                TheGamesDbGame.slug == slug,
                TheGamesDbGame.title.like(f"{normalized}%"),
                TheGamesDbGame.title.like(f"%{normalized}%"),
            )
        )

        platforms = _normalize_platforms((filters or {}).get("platforms"))
        if platforms is not None:
            query = query.filter(TheGamesDbGame.platform.in_(platforms))

        query = query.order_by(case((TheGamesDbGame.slug == slug, 0), else_=1), TheGamesDbGame.title)
        if limit is not None and limit > 0:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def for_platform(platform_name, limit=None):
        """Games on one platform (exact name), most recently synced first"""
        if not isinstance(platform_name, str) or not platform_name.strip():
            return []
        query = TheGamesDbGame.query.filter(TheGamesDbGame.platform == platform_name.strip()).order_by(
            TheGamesDbGame.last_synced_at.desc(), TheGamesDbGame.title
        )
        if limit is not None and limit > 0:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def catalogue_candidates(categories=None, platforms=None, families=None, offset=0, limit=None):
        """
        Rows for the trending mirror source.

        Category/platform/family filters are applied in SQL together with the
        PC cutoff; newest releases first.
        """
        query = TheGamesDbGame.query.filter(pc_policy_clause())

        categories = [c for c in (categories or []) if c]
        if categories:
            query = query.filter(TheGamesDbGame.category.in_(categories))

        platforms = [p for p in (platforms or []) if p]
        if platforms:
            query = query.filter(TheGamesDbGame.platform.in_(platforms))

        patterns = []
        for family in families or []:
            patterns.extend(FAMILY_PATTERNS.get(str(family).lower(), []))
        if patterns:
            query = query.filter(or_(*[TheGamesDbGame.platform.like(p) for p in patterns]))

        query = query.order_by(
            TheGamesDbGame.release_date.is_(None),
            TheGamesDbGame.release_date.desc(),
            TheGamesDbGame.last_synced_at.desc(),
            TheGamesDbGame.title,
        )
        if offset:
            query = query.offset(offset)
        if limit is not None and limit > 0:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def shard_ids(total_shards, shard, limit=None):
        """Mirrored external ids where ``external_id % total_shards == shard``, stalest first"""
        query = (
            db.session.query(TheGamesDbGame.external_id)
            .filter((TheGamesDbGame.external_id % total_shards) == shard)
            .order_by(TheGamesDbGame.last_synced_at.asc(), TheGamesDbGame.external_id.asc())
        )
        if limit is not None and limit > 0:
            query = query.limit(limit)
        return [row[0] for row in query.all()]

    @staticmethod
    def count():
        return TheGamesDbGame.query.count()

    @staticmethod
    def latest_sync_state():
        state = VendorSyncState.query.filter_by(provider=PROVIDER_KEY).first()
        if state is None:
            state = VendorSyncState(provider=PROVIDER_KEY, metadata_json={})
            db.session.add(state)
            db.session.flush()
        return state

    @staticmethod
    def update_full_sync_state(timestamp=None, extra=None):
        state = TheGamesDbMirrorRepository.latest_sync_state()
        state.last_full_sync_at = timestamp or now_utc()
        state.metadata_json = {**(state.metadata_json or {}), **(extra or {})}
        db.session.commit()
        return state

    @staticmethod
    def update_incremental_sync_state(timestamp=None, extra=None):
        state = TheGamesDbMirrorRepository.latest_sync_state()
        state.last_incremental_sync_at = timestamp or now_utc()
        state.metadata_json = {**(state.metadata_json or {}), **(extra or {})}
        db.session.commit()
        return state

    @staticmethod
    def update_sweep_state(timestamp=None, extra=None):
        return TheGamesDbMirrorRepository._update_nested("sweep", "last_sweep_at", timestamp, extra)

    @staticmethod
    def update_discovery_state(timestamp=None, extra=None):
        return TheGamesDbMirrorRepository._update_nested("discovery", "last_discovery_at", timestamp, extra)

    @staticmethod
    def _update_nested(section, stamp_key, timestamp, extra):
        state = TheGamesDbMirrorRepository.latest_sync_state()
        existing = dict(state.metadata_json or {})
        current = existing.get(section) if isinstance(existing.get(section), dict) else {}
        existing[stamp_key] = isoformat(timestamp or now_utc())
        existing[section] = {**current, **(extra or {})}
        # reassign so the JSON column is flagged dirty
        state.metadata_json = existing
        db.session.commit()
        return state


def _normalize_platforms(platforms):
    if platforms is None:
        return None
    if not isinstance(platforms, (list, tuple, set)):
        platforms = [platforms]
    normalized = list(dict.fromkeys(str(p).strip() for p in platforms if p is not None and str(p).strip()))
    return normalized or None
