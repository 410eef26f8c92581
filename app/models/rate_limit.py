"""
Model: RateLimit
Persisted token bucket, one row per provider.
"""

from db import db, now_utc


class RateLimit(db.Model):
    __tablename__ = "rate_limits"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(64), unique=True, nullable=False)
    tokens = db.Column(db.Float, nullable=False, default=0.0)
    last_refill_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)
