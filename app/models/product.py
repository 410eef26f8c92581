"""
Model: Product
Canonical catalogue entry that every provider resolves into.
"""

from db import db, now_utc

product_platforms = db.Table(
    "product_platforms",
    db.Column("product_id", db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    db.Column("platform_id", db.Integer, db.ForeignKey("platforms.id", ondelete="CASCADE"), primary_key=True),
)

product_genres = db.Table(
    "product_genres",
    db.Column("product_id", db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    db.Column("genre_id", db.Integer, db.ForeignKey("genres.id", ondelete="CASCADE"), primary_key=True),
)


class Product(db.Model):
    """One real-world game (or hardware SKU), keyed by ``uid``"""

    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(64), unique=True, index=True)  # never reassigned once set
    slug = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    platform = db.Column(db.String(255))
    primary_platform_family = db.Column(db.String(32), index=True)
    category = db.Column(db.String(32))  # 'Game' or 'Hardware'
    synopsis = db.Column(db.Text)
    release_date = db.Column(db.Date)

    popularity_score = db.Column(db.Float, default=0.0)  # [0, 1]
    rating = db.Column(db.Float, default=0.0)  # [0, 100]
    freshness_score = db.Column(db.Float, default=0.0)  # [0, 1]

    # "metadata" is reserved on declarative models
    metadata_json = db.Column("metadata", db.JSON)
    external_ids = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=now_utc)
    updated_at = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    platforms = db.relationship("Platform", secondary=product_platforms, lazy="subquery", backref="products")
    genres = db.relationship("Genre", secondary=product_genres, lazy="subquery", backref="products")
    aliases = db.relationship("GameAlias", backref="product", lazy=True, cascade="all, delete-orphan")
    sku_regions = db.relationship("SkuRegion", backref="product", lazy=True, cascade="all, delete-orphan")
    media = db.relationship("ProductMedia", backref="product", lazy=True, cascade="all, delete-orphan")

    __table_args__ = (
        db.Index("idx_products_platform_category", "platform", "category"),
        db.Index("idx_products_popularity_rating", "popularity_score", "rating"),
    )

    def source_metadata(self, provider):
        return ((self.metadata_json or {}).get("sources") or {}).get(provider)

    def to_dict(self):
        return {
            "id": self.id,
            "uid": self.uid,
            "slug": self.slug,
            "name": self.name,
            "platform": self.platform,
            "primary_platform_family": self.primary_platform_family,
            "category": self.category,
            "release_date": self.release_date.isoformat() if self.release_date else None,
            "popularity_score": self.popularity_score,
            "rating": self.rating,
            "freshness_score": self.freshness_score,
            "external_ids": self.external_ids or {},
            "platforms": [p.code for p in self.platforms],
            "genres": [g.slug for g in self.genres],
        }
