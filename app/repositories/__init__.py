"""
Repositories package

Each repository encapsulates database operations for one model family:
- product_repository.py
- alias_repository.py
- mirror_repository.py
- etc.

Upsert helpers only flush; the caller owns the transaction (see ``db.atomic``).

Usage:
    from repositories.product_repository import ProductRepository
    product = ProductRepository.get_by_uid(uid)
"""
