"""
Model: GameAlias
Links a provider's own id for a game to the canonical Product.
"""

from db import db, now_utc


class GameAlias(db.Model):
    __tablename__ = "game_aliases"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    provider = db.Column(db.String(32), nullable=False)
    provider_game_id = db.Column(db.String(128), nullable=False)
    alias_title = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    __table_args__ = (
        db.UniqueConstraint("provider", "provider_game_id", name="uq_alias_provider_game"),
        db.Index("idx_alias_product_provider", "product_id", "provider"),
    )
