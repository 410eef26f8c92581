"""
Model: TheGamesDbGame
Local mirror of TheGamesDB catalogue rows, keyed by the provider's numeric id.
"""

from db import db, now_utc


class TheGamesDbGame(db.Model):
    __tablename__ = "thegamesdb_games"

    id = db.Column(db.Integer, primary_key=True)
    external_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), index=True)
    platform = db.Column(db.String(255), index=True)
    category = db.Column(db.String(64))
    players = db.Column(db.Integer)
    genres = db.Column(db.JSON)  # list of strings
    developer = db.Column(db.String(255))
    publisher = db.Column(db.String(255))
    release_date = db.Column(db.Date)
    image_url = db.Column(db.String(512))
    thumb_url = db.Column(db.String(512))
    metadata_json = db.Column("metadata", db.JSON)
    last_synced_at = db.Column(db.DateTime, default=now_utc)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    def to_dict(self):
        return {
            "external_id": self.external_id,
            "title": self.title,
            "slug": self.slug,
            "platform": self.platform,
            "category": self.category,
            "genres": self.genres or [],
            "developer": self.developer,
            "publisher": self.publisher,
            "release_date": self.release_date.isoformat() if self.release_date else None,
            "image_url": self.image_url,
            "thumb_url": self.thumb_url,
        }
