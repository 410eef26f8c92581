"""
Repository for DatasetSnapshot database operations
"""

from sqlalchemy.exc import SQLAlchemyError
from db import db
from models.dataset_snapshot import DatasetSnapshot


class SnapshotRepository:
    """Repository for DatasetSnapshot database operations"""

    @staticmethod
    def get_by_id(id):
        return db.session.get(DatasetSnapshot, id)

    @staticmethod
    def create(**kwargs):
        """Create new DatasetSnapshot record"""
        try:
            item = DatasetSnapshot(**kwargs)
            db.session.add(item)
            db.session.commit()
            db.session.refresh(item)
            return item
        except SQLAlchemyError as e:
            db.session.rollback()
            raise e

    @staticmethod
    def update(id, **kwargs):
        """Update DatasetSnapshot record"""
        item = db.session.get(DatasetSnapshot, id)
        if not item:
            return None

        for key, value in kwargs.items():
            if hasattr(item, key):
                setattr(item, key, value)

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise e
        return item

    @staticmethod
    def latest(kind=None, limit=20):
        query = DatasetSnapshot.query
        if kind:
            query = query.filter(DatasetSnapshot.kind == kind)
        return query.order_by(DatasetSnapshot.id.desc()).limit(limit).all()

    @staticmethod
    def count(kind=None, status=None):
        query = DatasetSnapshot.query
        if kind:
            query = query.filter(DatasetSnapshot.kind == kind)
        if status:
            query = query.filter(DatasetSnapshot.status == status)
        return query.count()
