"""
Model: PriceSeriesAggregate
Bucketed min/max/avg of RegionPrice rows, rebuilt by the series job.
"""

from db import db, now_utc


class PriceSeriesAggregate(db.Model):
    __tablename__ = "price_series_aggregates"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    region_code = db.Column(db.String(8), nullable=False)
    bucket = db.Column(db.String(16), nullable=False, default="day")
    window_start = db.Column(db.DateTime, nullable=False)
    window_end = db.Column(db.DateTime, nullable=False)
    currency = db.Column(db.String(3))
    min_fiat = db.Column(db.Float)
    max_fiat = db.Column(db.Float)
    avg_fiat = db.Column(db.Float)
    sample_count = db.Column(db.Integer, default=0)
    metadata_json = db.Column("metadata", db.JSON)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    __table_args__ = (
        db.UniqueConstraint("product_id", "region_code", "bucket", "window_start", name="uq_series_bucket"),
    )
