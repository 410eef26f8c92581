"""
Model: ProviderUsage
Daily call counter used to rotate between price providers.
"""

from db import db, now_utc


class ProviderUsage(db.Model):
    __tablename__ = "provider_usages"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(64), unique=True, nullable=False)
    total_calls = db.Column(db.Integer, default=0)
    daily_calls = db.Column(db.Integer, default=0)
    daily_window = db.Column(db.Date)
    last_called_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)
