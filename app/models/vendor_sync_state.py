"""
Model: VendorSyncState
One row per bulk provider holding the cursors of every sync strategy.
"""

from db import db, now_utc


class VendorSyncState(db.Model):
    __tablename__ = "vendor_sync_states"

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(64), unique=True, nullable=False)
    last_full_sync_at = db.Column(db.DateTime)
    last_incremental_sync_at = db.Column(db.DateTime)
    # sweep/discovery cursors live under metadata["sweep"] / metadata["discovery"]
    metadata_json = db.Column("metadata", db.JSON)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)
