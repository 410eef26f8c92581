"""
Normalized trending entry shared by every catalogue source
"""
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from utils import (
    data_get,
    date_from_parts,
    extract_strings,
    isoformat,
    parse_date,
    pluck,
    slugify,
    to_float,
    to_int,
    unique,
)

MIRROR_SOURCE = "thegamesdb_mirror"


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None, empty strings and empty lists"""
    return {k: v for k, v in values.items() if v is not None and v != "" and v != []}


def split_aliases(value) -> List[str]:
    if not isinstance(value, str) or not value.strip():
        return []
    return unique(a.strip() for a in re.split(r"\r?\n|,", value) if a.strip())


@dataclass
class TrendingGameData:
    name: str
    slug: str
    released_at: Optional[date] = None
    platforms: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)
    stores: List[str] = field(default_factory=list)
    rating: Optional[float] = None
    metacritic: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_rawg(cls, payload: dict) -> "TrendingGameData":
        name = str(payload.get("name") or "Unknown Title")
        slug = str(payload.get("slug") or slugify(name))

        return cls(
            name=name,
            slug=slug,
            released_at=parse_date(payload.get("released")),
            platforms=pluck(payload.get("platforms"), "platform.name"),
            genres=pluck(payload.get("genres"), "name"),
            stores=pluck(payload.get("stores"), "store.name"),
            rating=to_float(payload.get("rating")),
            metacritic=to_int(payload.get("metacritic")),
            raw={"source": "rawg", "record": payload},
        )

    @classmethod
    def from_mirror(cls, game) -> "TrendingGameData":
        """Build from a ``TheGamesDbGame`` row"""
        name = game.title or "Unknown Title"
        metadata = _compact(
            {
                "thegamesdb_id": game.external_id,
                "category": game.category,
                "platform": game.platform,
                "players": game.players,
                "developer": game.developer,
                "publisher": game.publisher,
                "image_url": game.image_url,
                "thumb_url": game.thumb_url,
                "mirror_last_synced_at": isoformat(game.last_synced_at),
            }
        )
        if isinstance(game.metadata_json, dict):
            metadata = {**game.metadata_json, **metadata}

        record = {**game.to_dict(), "metadata": metadata}
        return cls(
            name=name,
            slug=game.slug or slugify(name),
            released_at=parse_date(game.release_date),
            platforms=unique([game.platform] if game.platform else []),
            genres=extract_strings(game.genres or []),
            raw={"source": MIRROR_SOURCE, "record": record},
        )

    @classmethod
    def from_giantbomb(cls, payload: dict) -> "TrendingGameData":
        name = str(payload.get("name") or "Unknown Title")
        released = parse_date(payload.get("original_release_date")) or date_from_parts(
            payload.get("expected_release_year"),
            payload.get("expected_release_month"),
            payload.get("expected_release_day"),
        )
        store_url = payload.get("site_detail_url")

        return cls(
            name=name,
            slug=slugify(name),
            released_at=released,
            platforms=extract_strings(payload.get("platforms")),
            genres=extract_strings(payload.get("genres")),
            stores=[store_url] if isinstance(store_url, str) and store_url else [],
            raw={"source": "giantbomb", "record": payload},
        )

    @classmethod
    def from_nexarda(cls, payload: dict) -> "TrendingGameData":
        name = str(payload.get("title") or payload.get("name") or "Unknown Title")
        slug = str(payload.get("slug") or slugify(name))
        released = parse_date(payload.get("release_date") or payload.get("released_on")) or date_from_parts(
            payload.get("release_year"), payload.get("release_month"), payload.get("release_day")
        )

        return cls(
            name=name,
            slug=slug,
            released_at=released,
            platforms=extract_strings(payload.get("platforms")) or extract_strings(payload.get("platform_list")),
            genres=extract_strings(payload.get("genres")) or extract_strings(payload.get("genre_list")),
            stores=extract_strings(payload.get("stores")) or extract_strings(payload.get("storefronts")),
            rating=to_float(payload.get("rating")),
            metacritic=to_int(payload.get("score")),
            raw={"source": "nexarda", "record": payload},
        )

    def source(self) -> str:
        return str(self.raw.get("source") or "rawg")

    def primary_platform(self) -> str:
        return self.platforms[0] if self.platforms else "Unknown"

    def record(self) -> dict:
        record = self.raw.get("record")
        return record if isinstance(record, dict) else {}

    def metadata(self) -> Dict[str, Any]:
        base = _compact(
            {
                "source": self.source(),
                "genres": self.genres,
                "platforms": self.platforms,
                "stores": self.stores,
            }
        )
        builder = {
            MIRROR_SOURCE: self._mirror_metadata,
            "giantbomb": self._giantbomb_metadata,
            "nexarda": self._nexarda_metadata,
        }.get(self.source(), self._rawg_metadata)
        return _compact(builder(base))

    def _rawg_metadata(self, base):
        record = self.record()
        metadata = {
            **base,
            **_compact(
                {
                    "rawg_id": record.get("id"),
                    "rawg_slug": record.get("slug") or self.slug,
                    "rawg_url": f"https://rawg.io/games/{self.slug}",
                    "rating": self.rating,
                    "metacritic": self.metacritic,
                }
            ),
        }
        playtime = to_int(record.get("playtime"))
        if playtime:
            metadata["average_playtime_hours"] = playtime
        esrb = data_get(record, "esrb_rating.name")
        if esrb:
            metadata["esrb_rating"] = esrb
        tags = extract_strings(record.get("tags"))
        if tags:
            metadata["tags"] = tags
        return metadata

    def _mirror_metadata(self, base):
        record = self.record()
        metadata = {
            **base,
            **_compact(
                {
                    "thegamesdb_id": record.get("external_id"),
                    "mirror_category": record.get("category"),
                    "mirror_platform": record.get("platform"),
                    "players": data_get(record, "metadata.players"),
                    "developer": record.get("developer"),
                    "publisher": record.get("publisher"),
                    "image_url": record.get("image_url"),
                    "thumb_url": record.get("thumb_url"),
                    "mirror_last_synced_at": data_get(record, "metadata.mirror_last_synced_at"),
                }
            ),
        }
        if not metadata.get("genres"):
            metadata["genres"] = extract_strings(record.get("genres"))
        return metadata

    def _giantbomb_metadata(self, base):
        record = self.record()
        metadata = {
            **base,
            **_compact(
                {
                    "giantbomb_id": record.get("id"),
                    "giantbomb_url": record.get("site_detail_url"),
                    "deck": record.get("deck"),
                    "image_url": data_get(record, "image.original_url"),
                }
            ),
        }
        aliases = split_aliases(record.get("aliases"))
        if aliases:
            metadata["aliases"] = aliases
        return metadata

    def _nexarda_metadata(self, base):
        record = self.record()
        return {
            **base,
            **_compact(
                {
                    "nexarda_id": record.get("id"),
                    "nexarda_slug": record.get("slug") or self.slug,
                    "nexarda_url": record.get("website") or record.get("url"),
                    "summary": record.get("summary") or record.get("short_desc"),
                    "score": record.get("score"),
                    "age_rating": record.get("age_rating") or record.get("esrb"),
                    "storefront_links": record.get("storefront_links"),
                }
            ),
        }
