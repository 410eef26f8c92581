"""
Model: RegionPrice
One observed price for a SkuRegion.
"""

from db import db, now_utc


class RegionPrice(db.Model):
    __tablename__ = "region_prices"

    id = db.Column(db.Integer, primary_key=True)
    sku_region_id = db.Column(db.Integer, db.ForeignKey("sku_regions.id", ondelete="CASCADE"), nullable=False)
    recorded_at = db.Column(db.DateTime, nullable=False, default=now_utc)
    fiat_amount = db.Column(db.Float, nullable=False)
    normal_amount = db.Column(db.Float)
    currency = db.Column(db.String(3))
    tax_inclusive = db.Column(db.Boolean, default=True)
    raw_payload = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=now_utc)

    __table_args__ = (db.Index("idx_region_prices_sku_recorded", "sku_region_id", "recorded_at"),)
