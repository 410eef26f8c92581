"""
Model: ProductMedia
Images and videos collected for a product from the media providers.
"""

from db import db, now_utc


class ProductMedia(db.Model):
    __tablename__ = "product_media"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    source = db.Column(db.String(64), nullable=False)
    external_id = db.Column(db.String(255))
    media_type = db.Column(db.String(32), default="image")  # image, video
    title = db.Column(db.String(255))
    caption = db.Column(db.String(512))
    url = db.Column(db.String(1024), nullable=False)
    thumbnail_url = db.Column(db.String(1024))
    attribution = db.Column(db.String(255))
    license = db.Column(db.String(255))
    license_url = db.Column(db.String(512))
    is_primary = db.Column(db.Boolean, default=False)
    width = db.Column(db.Integer)
    height = db.Column(db.Integer)
    quality_score = db.Column(db.Float, default=0.0)
    fetched_at = db.Column(db.DateTime)
    metadata_json = db.Column("metadata", db.JSON)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    __table_args__ = (
        db.UniqueConstraint("product_id", "source", "external_id", name="uq_media_product_source_external"),
        db.Index("idx_media_product_source", "product_id", "source"),
    )
