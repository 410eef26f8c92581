"""
Model: Platform
Lookup row keyed by normalized ``code`` (e.g. ``xbox-series-x-s``).
"""

from db import db, now_utc


class Platform(db.Model):
    __tablename__ = "platforms"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    family = db.Column(db.String(32), nullable=False, index=True)
    metadata_json = db.Column("metadata", db.JSON)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)
