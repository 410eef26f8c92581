"""
RAWG media: background art, screenshots, clips and trailers
"""
from typing import List

import structlog

from exceptions import ProviderException
from services.http_client import build_client
from services.media.base import MediaProvider
from services.media.media_data import ProductMediaData, unique_media
from utils import data_get, pluck, to_int

logger = structlog.get_logger("media.rawg")

ATTRIBUTION = {
    "license": "See RAWG Terms of Use",
    "license_url": "https://rawg.io/terms-of-service",
}


class RawgMediaProvider(MediaProvider):
    key = "rawg"

    def __init__(self, provider_config=None, http=None, config=None, limiter=None, timeout=20):
        super().__init__(provider_config, http)
        if self.http is None:
            self.http = build_client(
                "rawg",
                self.provider_config.base_url or "https://api.rawg.io/api",
                config=config,
                limiter=limiter,
                timeout=timeout,
            )

    def enabled(self) -> bool:
        return super().enabled() and bool((self.provider_config.api_key or "").strip())

    def _get_results(self, path, **params) -> list:
        payload = self.http.get_json(path, params={"key": self.provider_config.api_key, **params})
        results = data_get(payload, "results", [])
        return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []

    def fetch(self, product, context=None) -> List[ProductMediaData]:
        if not self.enabled():
            return []
        query = self.query_for(product, context)
        if not query:
            return []

        page_size = to_int(self.option("page_size", 8)) or 8
        video_only = self.video_only(context)

        media = []
        for item in self._get_results("/games", search=query, page_size=page_size)[:page_size]:
            if not video_only and item.get("background_image"):
                media.append(self._background(item))

            clip = item.get("clip") if isinstance(item.get("clip"), dict) else None
            clip_url = clip and (clip.get("video") or clip.get("clip"))
            if clip_url:
                media.append(self._clip(item, clip, clip_url))

            if self.option("fetch_trailers", True):
                media.extend(self._movies(item))

            if not video_only and self.option("fetch_screenshots", True):
                existing = [item.get("background_image")] + pluck(item.get("short_screenshots"), "image")
                existing = [u for u in existing if u]
                if not item.get("background_image") or len(existing) < 2:
                    media.extend(self._screenshots(item, existing))

        return unique_media(media)

    def _background(self, item) -> ProductMediaData:
        screenshots = pluck(item.get("short_screenshots"), "image")
        caption_bits = []
        if item.get("released"):
            caption_bits.append(f"Released {item['released']}")
        if item.get("rating"):
            caption_bits.append(f"RAWG rating {float(item['rating']):.1f}/5")

        return ProductMediaData(
            source=self.key,
            external_id=str(item["id"]) if item.get("id") is not None else None,
            media_type="image",
            title=item.get("name"),
            caption=" · ".join(caption_bits) or None,
            url=item["background_image"],
            thumbnail_url=screenshots[0] if screenshots else item["background_image"],
            attribution="Imagery courtesy RAWG.io",
            metadata={
                "slug": item.get("slug"),
                "released": item.get("released"),
                "rating": item.get("rating"),
                "metacritic": item.get("metacritic"),
                "platforms": pluck(item.get("platforms"), "platform.name"),
                "stores": pluck(item.get("stores"), "store.name"),
            },
            **ATTRIBUTION,
        )

    def _clip(self, item, clip, url) -> ProductMediaData:
        return ProductMediaData(
            source=self.key,
            external_id=f"{item['id']}:clip" if item.get("id") is not None else None,
            media_type="video",
            title=f"{item.get('name') or 'Gameplay'} Trailer",
            caption="Gameplay clip via RAWG.io",
            url=url,
            thumbnail_url=clip.get("preview") or data_get(clip, "clips.320") or item.get("background_image"),
            attribution="Video courtesy RAWG.io",
            metadata={k: v for k, v in {"slug": item.get("slug"), "clips": clip.get("clips")}.items() if v},
            **ATTRIBUTION,
        )

    def _movies(self, item, limit=2) -> List[ProductMediaData]:
        game_id = item.get("id")
        if not game_id or (to_int(item.get("movies_count")) or 0) <= 0:
            return []
        try:
            movies = self._get_results(f"/games/{game_id}/movies", page_size=6)
        except ProviderException as e:
            logger.warning("media.rawg.movies_failed", game_id=game_id, error=e.message)
            return []

        media = []
        for movie in movies[:limit]:
            url = data_get(movie, "data.max") or data_get(movie, "data.480")
            if not url:
                continue
            youtube_id = movie.get("external_id")
            external_id = str(movie["id"]) if movie.get("id") is not None else (f"yt:{youtube_id}" if youtube_id else None)
            media.append(
                ProductMediaData(
                    source=self.key,
                    external_id=external_id,
                    media_type="video",
                    title=movie.get("name") or f"{item.get('name') or 'Gameplay'} Trailer",
                    caption="Trailer via RAWG · YouTube" if youtube_id else "Gameplay capture via RAWG",
                    url=url,
                    thumbnail_url=movie.get("preview") or movie.get("image") or item.get("background_image"),
                    attribution="Video courtesy RAWG.io",
                    metadata={
                        k: v
                        for k, v in {
                            "external_id": youtube_id,
                            "stream_urls": movie.get("data"),
                            "runtime": data_get(movie, "metadata.runtime"),
                        }.items()
                        if v
                    },
                    **ATTRIBUTION,
                )
            )
        return media

    def _screenshots(self, item, exclude, limit=4) -> List[ProductMediaData]:
        game_id = item.get("id")
        if not game_id:
            return []
        try:
            shots = self._get_results(f"/games/{game_id}/screenshots", page_size=12)
        except ProviderException as e:
            logger.warning("media.rawg.screenshots_failed", game_id=game_id, error=e.message)
            return []

        media = []
        for shot in shots:
            url = shot.get("image")
            if not url or url in exclude:
                continue
            media.append(
                ProductMediaData(
                    source=self.key,
                    external_id=f"{game_id}:shot:{shot.get('id') or len(media)}",
                    media_type="image",
                    title=f"{item.get('name') or 'Screenshot'} Screenshot",
                    caption="Screenshot via RAWG.io",
                    url=url,
                    thumbnail_url=url,
                    attribution="Imagery courtesy RAWG.io",
                    metadata={k: v for k, v in {"width": shot.get("width"), "height": shot.get("height")}.items() if v},
                    **ATTRIBUTION,
                )
            )
            if len(media) >= limit:
                break
        return media
