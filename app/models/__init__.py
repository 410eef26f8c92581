"""
Models package

One model per file. Importing the package registers every table on
``db.metadata`` so ``db.create_all()`` sees them.
"""

from .product import Product, product_platforms, product_genres
from .game_alias import GameAlias
from .platform import Platform
from .genre import Genre
from .mirror_game import TheGamesDbGame
from .vendor_sync_state import VendorSyncState
from .vendor_http_cache import VendorHttpCache
from .rate_limit import RateLimit
from .dataset_snapshot import DatasetSnapshot
from .product_media import ProductMedia
from .sku_region import SkuRegion
from .region_price import RegionPrice
from .provider_usage import ProviderUsage
from .price_series_aggregate import PriceSeriesAggregate

__all__ = [
    "Product",
    "product_platforms",
    "product_genres",
    "GameAlias",
    "Platform",
    "Genre",
    "TheGamesDbGame",
    "VendorSyncState",
    "VendorHttpCache",
    "RateLimit",
    "DatasetSnapshot",
    "ProductMedia",
    "SkuRegion",
    "RegionPrice",
    "ProviderUsage",
    "PriceSeriesAggregate",
]
