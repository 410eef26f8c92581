"""
Map TheGamesDB ``Games/*`` payloads onto mirror row attributes
"""
from typing import Any, Dict, Iterable, List, Optional

from identity import determine_platform_family, is_excluded_pc_release
from utils import data_get, extract_strings, now_utc, parse_date, slugify, to_int


class TgdbPayload:
    """The parts of one response the transformer needs"""

    def __init__(self, payload: Optional[Dict[str, Any]]):
        payload = payload if isinstance(payload, dict) else {}
        games = data_get(payload, "data.games", [])
        self.games = [g for g in games if isinstance(g, dict)] if isinstance(games, list) else []
        artwork = data_get(payload, "include.boxart.data", None)
        if artwork is None:
            artwork = data_get(payload, "include.boxart", [])
        self.artwork = artwork
        base_url = data_get(payload, "include.boxart.base_url.original") or data_get(payload, "data.base_url.original")
        self.base_image_url = base_url if isinstance(base_url, str) else None
        platforms = data_get(payload, "include.platforms.data", None)
        if platforms is None:
            platforms = data_get(payload, "include.platforms", {})
        self.platform_index = index_platforms(platforms)


def game_ids(payload) -> List[int]:
    """Ids listed by ``Games/Updates``; entries are ids or ``{id|game_id: ...}``"""
    items = data_get(payload, "data.games", None)
    if items is None:
        items = data_get(payload, "data.updates", [])
    ids = []
    for item in items if isinstance(items, list) else []:
        value = (item.get("id") or item.get("game_id")) if isinstance(item, dict) else item
        number = to_int(value)
        if number and number not in ids:
            ids.append(number)
    return ids


def transform_games(payload: TgdbPayload, context: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Attributes for every game in the payload that passes the PC release cutoff"""
    rows = []
    for game in payload.games:
        attributes = transform_game(game, payload, context)
        if attributes is None or excluded(attributes):
            continue
        rows.append(attributes)
    return rows


def excluded(attributes: Dict[str, Any]) -> bool:
    family = determine_platform_family(attributes.get("platform"))
    return is_excluded_pc_release(family, attributes.get("release_date"))


def transform_game(game: Dict[str, Any], payload: TgdbPayload, context: Optional[Dict[str, Any]] = None):
    context = context or {}
    title = game.get("game_title") or game.get("name") or context.get("title") or ""
    if not isinstance(title, str) or not title.strip():
        return None
    title = title.strip()

    external_id = to_int(game.get("id")) or 0
    if external_id < 1:
        return None

    slug = slugify(context.get("slug") or game.get("slug") or title)
    box_art = resolve_box_art(external_id, payload.artwork)
    image_url = build_image_url(box_art.get("filename"), payload.base_image_url)
    thumb_url = build_image_url(box_art.get("thumb"), payload.base_image_url) or image_url

    raw_platform = game.get("platform", context.get("platform"))
    platform_id = extract_platform_id(raw_platform)
    platform_name = payload.platform_index.get(platform_id) if platform_id is not None else None
    if platform_name is None:
        fallback = raw_platform if isinstance(raw_platform, str) and raw_platform.strip() else context.get("platform")
        platform_name = fallback if isinstance(fallback, str) and fallback.strip() else None

    metadata = {
        "overview": game.get("overview"),
        "search_queries": context.get("queries"),
        "raw": game,
        "platform_id": platform_id,
        "platform_name": platform_name,
    }

    return {
        "external_id": external_id,
        "title": title,
        "slug": slug,
        "platform": platform_name,
        "category": context.get("category") or game.get("category") or "Game",
        "players": to_int(game.get("players")),
        "genres": extract_strings(game.get("genres")),
        "developer": _first_name(game.get("developer") or game.get("developers")),
        "publisher": _first_name(game.get("publisher") or game.get("publishers")),
        "release_date": parse_date(game.get("release_date")),
        "image_url": image_url,
        "thumb_url": thumb_url,
        "metadata": {k: v for k, v in metadata.items() if v not in (None, [], {})},
        "last_synced_at": now_utc(),
    }


def _first_name(value) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, list):
        for item in value:
            if isinstance(item, (str, int)) and str(item).strip():
                return str(item).strip()
    return None


def resolve_box_art(game_id: int, artwork) -> Dict[str, Optional[str]]:
    """Front box art first. ``artwork`` is a flat list or TheGamesDB's ``{game_id: [...]}`` map."""
    if isinstance(artwork, dict):
        items = artwork.get(str(game_id)) or artwork.get(game_id) or []
    elif isinstance(artwork, list):
        items = [a for a in artwork if isinstance(a, dict) and to_int(a.get("game_id")) == game_id]
    else:
        items = []

    items = [a for a in items if isinstance(a, dict)]
    if not items:
        return {}
    items.sort(key=lambda a: a.get("side") != "front")
    best = items[0]
    return {"filename": best.get("filename"), "thumb": best.get("thumbnail") or best.get("thumb")}


def build_image_url(path, base_image_url) -> Optional[str]:
    if not path or not isinstance(path, str) or not base_image_url:
        return None
    return base_image_url.rstrip("/") + "/" + path.lstrip("/")


def index_platforms(platforms) -> Dict[int, str]:
    """``{id: name}`` from a platform list or id-keyed map"""
    if isinstance(platforms, dict):
        items: Iterable = platforms.items()
    elif isinstance(platforms, list):
        items = enumerate(platforms)
    else:
        return {}

    index = {}
    for key, platform in items:
        if isinstance(platform, dict):
            platform_id = platform.get("id", platform.get("platform_id", key))
            name = platform.get("name") or platform.get("platform_name")
        elif isinstance(platform, (str, int, float)):
            platform_id, name = key, str(platform)
        else:
            continue

        platform_id = to_int(platform_id)
        if platform_id is None or not isinstance(name, str) or not name.strip():
            continue
        index[platform_id] = name.strip()
    return index


def extract_platform_id(value) -> Optional[int]:
    if isinstance(value, dict):
        value = value.get("id", value.get("platform_id"))
    elif isinstance(value, list):
        value = value[0] if value else None
    number = to_int(value)
    return number if number is not None and number >= 0 else None


def format_include(include, required=("platforms",)) -> Optional[str]:
    items = [i.strip().lower() for i in (include or "").split(",") if i.strip()] if isinstance(include, str) else []
    for value in required:
        if value not in items:
            items.append(value)
    return ",".join(items) or None
