"""
Repository for VendorHttpCache validators
"""

from db import db
from models.vendor_http_cache import VendorHttpCache
from utils import now_utc


class VendorHttpCacheRepository:
    """One row per (provider, endpoint key); commits so validators survive a failed job"""

    @staticmethod
    def get(provider, endpoint):
        return VendorHttpCache.query.filter_by(provider=provider, endpoint=endpoint).first()

    @staticmethod
    def touch(provider, endpoint):
        entry = VendorHttpCacheRepository.get(provider, endpoint)
        if entry is None:
            return None
        entry.last_checked_at = now_utc()
        db.session.commit()
        return entry

    @staticmethod
    def store(provider, endpoint, etag=None, last_modified_at=None, metadata=None):
        entry = VendorHttpCacheRepository.get(provider, endpoint)
        if entry is None:
            entry = VendorHttpCache(provider=provider, endpoint=endpoint)
            db.session.add(entry)

        entry.etag = etag
        entry.last_modified_at = last_modified_at
        entry.last_checked_at = now_utc()
        entry.metadata_json = metadata or {}
        db.session.commit()
        return entry
