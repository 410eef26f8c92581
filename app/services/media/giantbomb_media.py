"""
GiantBomb media: game images and hosted videos
"""
from typing import List

from services.giantbomb_api import GiantBombClient
from services.media.base import MediaProvider
from services.media.media_data import ProductMediaData, unique_media
from utils import data_get, to_int

LICENSE = "Non-commercial use with attribution"
LICENSE_URL = "https://www.giantbomb.com/terms-of-use/"


class GiantBombMediaProvider(MediaProvider):
    key = "giantbomb"

    def __init__(self, provider_config=None, http=None, config=None, limiter=None, client=None, timeout=20):
        super().__init__(provider_config, http)
        self.client = client or GiantBombClient(
            self.provider_config.api_key,
            base_url=self.provider_config.base_url,
            config=config,
            limiter=limiter,
            http=http,
            timeout=timeout,
        )

    def enabled(self) -> bool:
        return super().enabled() and self.client.enabled()

    def fetch(self, product, context=None) -> List[ProductMediaData]:
        if not self.enabled():
            return []
        query = self.query_for(product, context)
        if not query:
            return []

        resource = (context or {}).get("resource") or "game"
        media = []
        if not self.video_only(context):
            games = self.client.search(query, resources=resource, limit=to_int(self.option("limit", 6)) or 6)
            media.extend(self._image(item) for item in games if data_get(item, "image.original_url"))

        if self.option("include_videos", True):
            videos = self.client.search(query, resources="video", limit=to_int(self.option("video_limit", 4)) or 4)
            media.extend(self._video(video) for video in videos)

        return unique_media(media)

    def _image(self, item) -> ProductMediaData:
        image = item.get("image") or {}
        return ProductMediaData(
            source=self.key,
            external_id=str(item["id"]) if item.get("id") is not None else None,
            media_type="image",
            title=item.get("name"),
            caption=item.get("deck"),
            url=image["original_url"],
            thumbnail_url=image.get("small_url") or image.get("super_url"),
            attribution="Images © Giant Bomb / CBS Interactive",
            license=LICENSE,
            license_url=LICENSE_URL,
            metadata={
                "resource_type": item.get("resource_type"),
                "site_detail_url": item.get("site_detail_url"),
                "platforms": item.get("platforms") or [],
            },
        )

    def _video(self, video):
        url = video.get("hd_url") or video.get("high_url") or video.get("low_url")
        if not url:
            return None
        image = video.get("image") or {}
        return ProductMediaData(
            source=self.key,
            external_id=str(video["id"]) if video.get("id") is not None else None,
            media_type="video",
            title=video.get("name") or "Giant Bomb Feature",
            caption=video.get("deck") or "Giant Bomb hosted video",
            url=url,
            thumbnail_url=image.get("medium_url") or image.get("screen_url"),
            attribution="Video © Giant Bomb / CBS Interactive",
            license=LICENSE,
            license_url=LICENSE_URL,
            metadata={
                k: v
                for k, v in {
                    "length_seconds": video.get("length_seconds"),
                    "publish_date": video.get("publish_date"),
                    "site_detail_url": video.get("site_detail_url"),
                    "video_type": video.get("video_type"),
                }.items()
                if v
            },
        )
