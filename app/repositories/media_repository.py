"""
Repository for ProductMedia database operations
"""

from db import db
from models.product_media import ProductMedia
from utils import now_utc


class MediaRepository:
    """Repository for ProductMedia database operations"""

    @staticmethod
    def for_product(product_id, limit=None):
        query = ProductMedia.query.filter_by(product_id=product_id).order_by(
            ProductMedia.is_primary.desc(), ProductMedia.quality_score.desc(), ProductMedia.id
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def upsert(product_id, source, external_id, **attributes):
        """Keyed by ``(product_id, source, external_id)``; only flushes"""
        media = ProductMedia.query.filter_by(product_id=product_id, source=source, external_id=external_id).first()
        if media is None:
            media = ProductMedia(product_id=product_id, source=source, external_id=external_id)
            db.session.add(media)

        for key, value in attributes.items():
            if hasattr(media, key):
                setattr(media, key, value)
        if media.fetched_at is None:
            media.fetched_at = now_utc()

        db.session.flush()
        return media

    @staticmethod
    def count(product_id=None):
        query = ProductMedia.query
        if product_id is not None:
            query = query.filter_by(product_id=product_id)
        return query.count()
