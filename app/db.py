from contextlib import contextmanager
import logging

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event

from utils import now_utc

# Retrieve main logger
logger = logging.getLogger("main")

db = SQLAlchemy()


@contextmanager
def atomic():
    """
    Run a block of writes as one transaction.

    Commits on success; on any error rolls back and re-raises so the caller's
    retry logic sees the original exception.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def init_db(app):
    with app.app_context():
        # Ensure foreign keys, WAL mode, and timeout are set when connection is opened
        @event.listens_for(db.engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            import sqlite3
            if not isinstance(dbapi_connection, sqlite3.Connection):
                return

            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.execute("PRAGMA busy_timeout=30000;")
            cursor.close()

        # Schema is owned elsewhere; make sure our tables exist for local runs
        import models  # noqa: F401 registers every table on db.metadata

        db.create_all()
        logger.info("Database tables ready.")


__all__ = ["db", "init_db", "atomic", "now_utc"]
