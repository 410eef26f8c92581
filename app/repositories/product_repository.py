"""
Repository for Product database operations
"""

from sqlalchemy.orm.attributes import flag_modified

from db import db
from models.product import Product


class ProductRepository:
    """Repository for Product database operations"""

    @staticmethod
    def get_by_id(id):
        return db.session.get(Product, id)

    @staticmethod
    def get_by_uid(uid):
        if not uid:
            return None
        return Product.query.filter(Product.uid == uid).first()

    @staticmethod
    def get_by_slug(slug):
        if not slug:
            return None
        return Product.query.filter(Product.slug == slug).first()

    @staticmethod
    def find_for_identity(uid, slug):
        """uid match first, slug second"""
        return ProductRepository.get_by_uid(uid) or ProductRepository.get_by_slug(slug)

    @staticmethod
    def count():
        return Product.query.count()

    @staticmethod
    def add(product):
        """Stage a new product and flush so it gets an id"""
        db.session.add(product)
        db.session.flush()
        return product

    @staticmethod
    def set_metadata(product, metadata):
        product.metadata_json = metadata
        flag_modified(product, "metadata_json")

    @staticmethod
    def set_external_ids(product, external_ids):
        product.external_ids = external_ids
        flag_modified(product, "external_ids")

