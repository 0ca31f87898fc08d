import os

APP_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_DIR = os.path.dirname(APP_DIR)
DATA_DIR = os.environ.get('DECKWORTHY_DATA_DIR', os.path.join(PROJECT_DIR, 'data'))
CONFIG_DIR = os.environ.get('DECKWORTHY_CONFIG_DIR', os.path.join(PROJECT_DIR, 'config'))
DB_FILE = os.path.join(DATA_DIR, 'deckworthy.db')
CONFIG_FILE = os.path.join(CONFIG_DIR, 'settings.yaml')

BUILD_VERSION = '20261018_0900'

USER_AGENT = 'Deckworthy/1.0 (Game Price Aggregator)'

# Upstream endpoints
STEAM_API_BASE = 'https://api.steampowered.com'
STEAM_STORE_API = 'https://store.steampowered.com/api'
STEAM_STORE_APP_URL = 'https://store.steampowered.com/app/{app_id}'
PROTONDB_API_BASE = 'https://www.protondb.com/api/v1'
ITAD_API_BASE = 'https://api.isthereanydeal.com'
ITAD_STEAM_SHOP_ID = 61

# Outbound rate limits (requests, seconds)
STEAM_RATE_LIMIT = (50, 60)
PROTONDB_RATE_LIMIT = (10, 60)
ITAD_RATE_LIMIT = (900, 60)

STEAM_RATE_LIMIT_COOLDOWN = 60
STEAM_RATE_LIMIT_RETRIES = 1
STEAM_REQUEST_DELAY = 1.0
STEAM_MAX_APP_ID = 1000000

ITAD_LOOKUP_BATCH_SIZE = 200
ITAD_PRICES_BATCH_SIZE = 100

# Sync audit source names
SOURCE_STEAM = 'steam'
SOURCE_PROTONDB = 'protondb'
SOURCE_ITAD = 'itad'

SYNC_STATUS_SUCCESS = 'success'
SYNC_STATUS_FAILED = 'failed'

# ProtonDB tiers, best first. 'native' and 'pending' are vendor extensions.
PROTON_TIERS = [
    'platinum',
    'gold',
    'silver',
    'bronze',
    'borked',
    'pending',
    'native',
]
FALLBACK_TIER = 'pending'

# Game list API
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
MAX_PAGE = 1000000
DEFAULT_SORT_FIELD = 'name'
SORT_FIELDS = [
    'name',
    'release_date',
    'min_price',
    'max_discount',
    'proton_score',
]

DEFAULT_HISTORY_DAYS = 90
MAX_HISTORY_DAYS = 3650
DEFAULT_DEALS_LIMIT = 20
DEFAULT_DEALS_MIN_DISCOUNT = 50

DEFAULT_SETTINGS = {
    "database": {
        "path": DB_FILE,
        "history_retention_days": 365,
    },
    "server": {
        "host": "0.0.0.0",
        "port": 3000,
        "cors_origins": ["*"],
        "rate_limits": ["600 per hour"],
    },
    "apis": {
        "itad_api_key": "",
    },
    "sync": {
        "scheduler_enabled": True,
        "prices_schedule": "0 */6 * * *",
        "protondb_schedule": "0 2 * * *",
        "games_schedule": "0 3 * * 0",
        "maintenance_schedule": "30 4 * * *",
        "games_limit": 1000,
        "protondb_stale_hours": 168,
    },
}

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "DATABASE_PATH": ("database", "path"),
    "ITAD_API_KEY": ("apis", "itad_api_key"),
    "SYNC_PRICES_SCHEDULE": ("sync", "prices_schedule"),
    "SYNC_PROTONDB_SCHEDULE": ("sync", "protondb_schedule"),
    "SYNC_GAMES_SCHEDULE": ("sync", "games_schedule"),
    "PORT": ("server", "port"),
    "CORS_ORIGINS": ("server", "cors_origins"),
    "ENABLE_SCHEDULER": ("sync", "scheduler_enabled"),
}
