"""
Model: VendorHttpCache
Conditional-request validators (ETag / Last-Modified) per provider endpoint.
"""

from db import db, now_utc


class VendorHttpCache(db.Model):
    __tablename__ = "vendor_http_caches"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(64), nullable=False)
    endpoint = db.Column(db.String(512), nullable=False)
    etag = db.Column(db.String(255))
    last_modified_at = db.Column(db.DateTime)
    last_checked_at = db.Column(db.DateTime)
    metadata_json = db.Column("metadata", db.JSON)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    __table_args__ = (db.UniqueConstraint("provider", "endpoint", name="uq_vendor_http_cache_endpoint"),)
