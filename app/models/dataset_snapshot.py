"""
Model: DatasetSnapshot
Audit trail of aggregation/sync runs. Rows are only ever appended and finalized.
"""

from db import db, now_utc


class DatasetSnapshot(db.Model):
    __tablename__ = "dataset_snapshots"

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(64), nullable=False)
    provider = db.Column(db.String(64))
    status = db.Column(db.String(20), nullable=False, default="pending")  # pending, running, succeeded, failed
    started_at = db.Column(db.DateTime)
    finished_at = db.Column(db.DateTime)
    row_count = db.Column(db.Integer, default=0)
    context = db.Column(db.JSON)
    error_details = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    __table_args__ = (
        db.Index("idx_snapshots_kind_started", "kind", "started_at"),
        db.Index("idx_snapshots_status_kind", "status", "kind"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind,
            "provider": self.provider,
            "status": self.status,
            "row_count": self.row_count,
            "context": self.context,
            "error": self.error_details,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
