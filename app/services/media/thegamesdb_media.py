"""
TheGamesDB media: box art already held in the local mirror
"""
from typing import List, Optional

from repositories.mirror_repository import TheGamesDbMirrorRepository
from services.media.base import MediaProvider
from services.media.media_data import ProductMediaData
from utils import isoformat, to_int


class TheGamesDbMediaProvider(MediaProvider):
    key = "thegamesdb"

    def fetch(self, product, context=None) -> List[ProductMediaData]:
        if not self.enabled():
            return []
        context = context or {}
        query = self.query_for(product, context)
        if not query:
            return []

        platforms = merge_platforms([product.platform, *(self.option("platforms", []) or [])], context.get("platforms"))
        games = TheGamesDbMirrorRepository.search(query, {"platforms": platforms}, resolve_limit(context.get("limit")))
        return [m for m in (self.media_for(game) for game in games) if m]

    def media_for(self, game) -> Optional[ProductMediaData]:
        if not game.image_url:
            return None
        metadata = {
            "players": game.players,
            "genres": game.genres,
            "developer": game.developer,
            "release_date": isoformat(game.release_date),
            "platform": game.platform,
        }
        return ProductMediaData(
            source=self.key,
            external_id=str(game.external_id),
            media_type="image",
            title=game.title,
            caption=(game.metadata_json or {}).get("overview"),
            url=game.image_url,
            thumbnail_url=game.thumb_url or game.image_url,
            attribution="TheGamesDB Community",
            license="Community-sourced (non-commercial use)",
            license_url="https://thegamesdb.net",
            metadata={k: v for k, v in metadata.items() if v not in (None, [])},
        )


def merge_platforms(defaults, override) -> Optional[List[str]]:
    if isinstance(override, (list, tuple)):
        overrides = list(override)
    elif override is not None:
        overrides = [override]
    else:
        overrides = []

    merged = []
    for value in list(defaults) + overrides:
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text and text != "Unknown" and text not in merged:
            merged.append(text)
    return merged or None


def resolve_limit(value) -> Optional[int]:
    limit = to_int(value)
    return limit if limit and limit > 0 else None
