import os

APP_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.path.join(APP_DIR, 'data')
CONFIG_DIR = os.environ.get('GAMECOMPARE_CONFIG_DIR', os.path.join(APP_DIR, 'config'))
DB_FILE = os.path.join(CONFIG_DIR, 'gamecompare.db')
CONFIG_FILE = os.path.join(CONFIG_DIR, 'settings.yaml')
CACHE_DIR = os.path.join(DATA_DIR, 'cache')

GAMECOMPARE_DB = os.environ.get('DATABASE_URL', 'sqlite:///' + DB_FILE)
REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

BUILD_VERSION = '20261019_0900'

USER_AGENT = 'GameCompareBot/1.0 (portfolio use)'
LINK_VERIFIER_USER_AGENT = 'GameCompareLinkVerifier/1.0'

# Catalogue sources, in priority order. Iteration order is the dedup rank.
CATALOGUE_SOURCES = [
    'rawg',
    'thegamesdb_mirror',
    'giantbomb',
    'nexarda',
    'nexarda_feed',
]

PLATFORM_FAMILIES = [
    'playstation',
    'xbox',
    'nintendo',
    'pc',
    'mobile',
    'sega',
    'arcade',
    'retro',
]

# PC releases before this date are never ingested
PC_CUTOFF_DATE = '2015-01-01'

QUEUE_FETCH = 'fetch'
QUEUE_OFFERS = 'offers'
QUEUE_MEDIA = 'media'
QUEUE_AGGREGATE = 'aggregate'
QUEUE_VERIFY = 'verify'
QUEUE_RAWG = 'providers:rawg'
QUEUE_GIANTBOMB = 'providers:giantbomb'

OFFER_REGIONS = ['US', 'GB', 'EU', 'CA']

DEFAULT_SETTINGS = {
    "catalogue": {
        "trending_seed_limit": 7,
        "window_days": 7,
        "skip_verify_links": False,
        "sources": {
            "rawg": {
                "enabled": True,
                "limit": None,
                "base_url": "https://api.rawg.io/api",
            },
            "thegamesdb_mirror": {
                "enabled": True,
                "limit": 250,
                "categories": ["Hardware", "Console", "Game"],
                "platforms": [],
                "families": [],
                "offset": 0,
            },
            "giantbomb": {
                "enabled": False,
                "limit": 40,
                "min_user_reviews": 25,
                "base_url": "https://www.giantbomb.com/api",
            },
            "nexarda": {
                "enabled": True,
                "limit": 200,
                "min_score": 70,
                "base_url": "https://www.nexarda.com/api/v3",
            },
            "nexarda_feed": {
                "enabled": True,
                "limit": 200,
                "base_url": "https://www.nexarda.com/api/v3",
                "local_file": None,
            },
        },
    },
    "providers": {
        "weights": {
            "rawg": 1.0,
            "giantbomb": 0.9,
            "thegamesdb": 0.8,
            "nexarda": 0.6,
            "wikimedia": 0.5,
        },
        "limits": {
            "rawg": {"max_rps": 2, "burst": 4},
            "giantbomb": {"max_rps": 1, "burst": 2},
            "thegamesdb": {"max_rps": 2, "burst": 4},
            "nexarda": {"max_rps": 1, "burst": 2},
            "wikimedia": {"max_rps": 5, "burst": 10},
            "coingecko": {"max_rps": 2, "burst": 4},
            "pricecharting": {"max_rps": 1, "burst": 2},
            "itad": {"max_rps": 1, "burst": 2},
            "nintendo_eshop": {"max_rps": 1, "burst": 2},
        },
        "daily_quotas": {
            "itad": 1000,
            "pricecharting": 500,
            "nexarda": 1000,
        },
    },
    "pricing": {
        "regions": OFFER_REGIONS,
        "providers": {
            "itad": {
                "enabled": True,
                "base_url": "https://api.isthereanydeal.com",
                "timeout": 15,
                "default_regions": [
                    {"currency": "USD", "country": "us", "region": "us", "region_code": "US"},
                    {"currency": "GBP", "country": "gb", "region": "uk", "region_code": "GB"},
                    {"currency": "EUR", "country": "de", "region": "eu1", "region_code": "EU"},
                    {"currency": "CAD", "country": "ca", "region": "us", "region_code": "CA"},
                ],
                "store_map": {},
            },
            "pricecharting": {
                "enabled": True,
                "base_url": "https://www.pricecharting.com/api",
                "timeout": 10,
                "store_map": {
                    "loose": {"store_id": "pricecharting_loose_usd", "region_code": "US"},
                    "complete": {"store_id": "pricecharting_complete_usd", "region_code": "US"},
                    "new": {"store_id": "pricecharting_new_usd", "region_code": "US"},
                },
            },
            "nexarda": {
                "enabled": True,
                "base_url": "https://www.nexarda.com/api/v3",
                "timeout": 15,
                "default_regions": [
                    {"currency": "USD", "region_code": "US"},
                    {"currency": "GBP", "region_code": "GB"},
                    {"currency": "EUR", "region_code": "EU"},
                ],
                "store_map": {},
            },
            "nintendo_eshop": {
                "enabled": False,
                "base_url": "https://api.ec.nintendo.com/v1",
                "timeout": 10,
                "countries": [
                    {"country": "US", "language": "en", "currency": "USD"},
                    {"country": "GB", "language": "en", "currency": "GBP"},
                    {"country": "CA", "language": "en", "currency": "CAD"},
                ],
            },
            "steam_store": {"enabled": False},
            "playstation_store": {"enabled": False},
            "microsoft_store": {"enabled": False},
            "ebay_browse": {"enabled": False},
        },
        "stores": {
            "pricecharting_loose_usd": {"retailer": "PriceCharting (Loose)", "region_code": "US", "currency": "USD"},
            "pricecharting_complete_usd": {"retailer": "PriceCharting (Complete)", "region_code": "US", "currency": "USD"},
            "pricecharting_new_usd": {"retailer": "PriceCharting (New)", "region_code": "US", "currency": "USD"},
        },
    },
    "media": {
        "http_timeout": 20,
        "cache_ttl": 3600,
        "providers": {
            "thegamesdb": {"enabled": True},
            "giantbomb": {
                "enabled": True,
                "base_url": "https://www.giantbomb.com/api",
                "limit": 6,
                "video_limit": 6,
                "include_videos": True,
            },
            "rawg": {
                "enabled": True,
                "base_url": "https://api.rawg.io/api",
                "page_size": 8,
                "fetch_trailers": True,
                "fetch_screenshots": True,
            },
        },
    },
    "thegamesdb": {
        "base_url": "https://api.thegamesdb.net/v1",
        "user_agent": "PriceCompareBot/1.0 (+contact)",
        "timeout": 20,
        "fields": ["players", "publishers", "genres", "overview", "platform"],
        "include": "boxart,platforms",
        "games": [],
        "sweep": {
            "window_days": 14,
            "daily_budget": 1800,
            "chunk_size": 25,
        },
        "discovery": {
            "enabled": False,
            "start_id": 1,
            "batch_size": 200,
            "max_id": None,
            "use_private_key": True,
            "requests_per_run": 1,
        },
    },
}

# Environment variables that override secrets in the settings file
SECRET_ENV_OVERRIDES = {
    ("catalogue", "sources", "rawg", "api_key"): ["RAWG_API_KEY"],
    ("catalogue", "sources", "giantbomb", "api_key"): ["GIANTBOMB_API_KEY"],
    ("catalogue", "sources", "nexarda", "api_key"): ["NEXARDA_API_KEY", "CATALOGUE_NEXARDA_API_KEY"],
    ("catalogue", "sources", "nexarda_feed", "api_key"): ["NEXARDA_FEED_KEY", "NEXARDA_API_KEY"],
    ("pricing", "providers", "itad", "api_key"): ["ITAD_API_KEY", "ISTHEREANYDEAL_API_KEY"],
    ("pricing", "providers", "pricecharting", "token"): ["PRICECHARTING_TOKEN"],
    ("pricing", "providers", "nexarda", "api_key"): ["NEXARDA_API_KEY"],
    ("media", "providers", "rawg", "api_key"): ["RAWG_API_KEY"],
    ("media", "providers", "giantbomb", "api_key"): ["GIANTBOMB_API_KEY"],
    ("thegamesdb", "public_key"): ["THEGAMESDB_PUBLIC_KEY"],
    ("thegamesdb", "private_key"): ["THEGAMESDB_PRIVATE_KEY"],
}
