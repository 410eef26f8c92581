"""
Model: SkuRegion
A product sold by one retailer in one region. Deactivated, never deleted, when its link dies.
"""

from db import db, now_utc


class SkuRegion(db.Model):
    __tablename__ = "sku_regions"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    region_code = db.Column(db.String(8), nullable=False)
    retailer = db.Column(db.String(255), nullable=False)
    currency = db.Column(db.String(3), nullable=False)
    sku = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True, index=True)
    metadata_json = db.Column("metadata", db.JSON)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    prices = db.relationship("RegionPrice", backref="sku_region", lazy=True, cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint("product_id", "region_code", "retailer", name="uq_sku_region_retailer"),
        db.Index("idx_sku_region_retailer", "region_code", "retailer"),
    )
