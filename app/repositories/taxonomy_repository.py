"""
Repository for Platform and Genre lookups
"""

from db import db
from models.platform import Platform
from models.genre import Genre


class TaxonomyRepository:
    """Upsert-by-code helpers for the many-to-many lookup tables"""

    @staticmethod
    def get_platform(code):
        return Platform.query.filter_by(code=code).first()

    @staticmethod
    def get_genre(slug):
        return Genre.query.filter_by(slug=slug).first()

    @staticmethod
    def upsert_platform(code, name, family):
        platform = TaxonomyRepository.get_platform(code)
        if platform is None:
            platform = Platform(code=code)
            db.session.add(platform)
        platform.name = name
        platform.family = family
        db.session.flush()
        return platform

    @staticmethod
    def upsert_genre(slug, name):
        genre = TaxonomyRepository.get_genre(slug)
        if genre is None:
            genre = Genre(slug=slug)
            db.session.add(genre)
        genre.name = name
        db.session.flush()
        return genre
