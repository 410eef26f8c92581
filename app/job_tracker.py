"""
DatasetSnapshot bookkeeping for one ingestion run.

Snapshots are committed as soon as they are opened and again when they are
finalized, so a run that dies halfway still leaves its trail.
"""
from typing import Any, Dict, Optional

import structlog

from db import db
from repositories.snapshot_repository import SnapshotRepository
from utils import now_utc

logger = structlog.get_logger("job_tracker")


class SnapshotStatus:
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SnapshotTracker:
    """Context manager around one DatasetSnapshot.

    Example:
        with SnapshotTracker("tgdb:full_sync", provider="thegamesdb") as run:
            run.row_count = sync()
            run.context["queries"] = 12

    Leaving the block normally marks the snapshot succeeded; an exception
    marks it failed with the error text and is re-raised.
    """

    def __init__(self, kind: str, provider: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.provider = provider
        self.context: Dict[str, Any] = dict(context or {})
        self.row_count = 0
        self.snapshot = None

    def __enter__(self):
        self.snapshot = SnapshotRepository.create(
            kind=self.kind,
            provider=self.provider,
            status=SnapshotStatus.RUNNING,
            started_at=now_utc(),
            context=self.context,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.finish(SnapshotStatus.SUCCEEDED)
        else:
            db.session.rollback()
            self.finish(SnapshotStatus.FAILED, error=str(exc_val))
            logger.error(
                "job_tracker.snapshot_failed",
                kind=self.kind,
                provider=self.provider,
                snapshot_id=self.snapshot.id,
                error=str(exc_val),
            )
        return False

    def finish(self, status: str, error: Optional[str] = None):
        return SnapshotRepository.update(
            self.snapshot.id,
            status=status,
            finished_at=now_utc(),
            row_count=self.row_count,
            context=dict(self.context),
            error_details=error,
        )
