"""
Repository for GameAlias database operations
"""

from db import db
from models.game_alias import GameAlias


class AliasRepository:
    """Repository for GameAlias database operations"""

    @staticmethod
    def get(provider, provider_game_id):
        return GameAlias.query.filter_by(provider=provider, provider_game_id=str(provider_game_id)).first()

    @staticmethod
    def for_product(product_id):
        return GameAlias.query.filter_by(product_id=product_id).order_by(GameAlias.provider).all()

    @staticmethod
    def upsert(provider, provider_game_id, product_id, alias_title):
        """
        Point ``(provider, provider_game_id)`` at ``product_id``.

        The pair is unique: an existing row is re-targeted and retitled,
        never duplicated.
        """
        provider_game_id = str(provider_game_id)
        alias = AliasRepository.get(provider, provider_game_id)
        if alias is None:
            alias = GameAlias(provider=provider, provider_game_id=provider_game_id)
            db.session.add(alias)

        alias.product_id = product_id
        alias.alias_title = (alias_title or provider_game_id)[:255]
        db.session.flush()
        return alias

    @staticmethod
    def count(provider=None):
        query = GameAlias.query
        if provider:
            query = query.filter_by(provider=provider)
        return query.count()
