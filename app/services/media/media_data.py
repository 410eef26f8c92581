"""
Normalized media asset returned by every media provider
"""
import hashlib
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ProductMediaData:
    source: str
    external_id: Optional[str]
    media_type: str
    url: str
    title: Optional[str] = None
    caption: Optional[str] = None
    thumbnail_url: Optional[str] = None
    attribution: Optional[str] = None
    license: Optional[str] = None
    license_url: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def identity(self) -> str:
        """Dedup key within one provider's results"""
        return f"{self.url}|{self.external_id or ''}|{self.media_type}"

    def storage_id(self) -> str:
        """External id for the upsert key; derived from the url when the provider gives none"""
        if self.external_id:
            return str(self.external_id)[:255]
        return "url:" + hashlib.sha1(self.url.encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProductMediaData":
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__ if k in data})

    def model_attributes(self) -> Dict[str, Any]:
        return {
            "media_type": self.media_type,
            "title": (self.title or "")[:255] or None,
            "caption": (self.caption or "")[:512] or None,
            "url": self.url,
            "thumbnail_url": self.thumbnail_url,
            "attribution": self.attribution,
            "license": self.license,
            "license_url": self.license_url,
            "metadata_json": self.metadata or {},
        }


def unique_media(items):
    seen = set()
    result = []
    for item in items:
        if item is None or not item.url or item.identity() in seen:
            continue
        seen.add(item.identity())
        result.append(item)
    return result
