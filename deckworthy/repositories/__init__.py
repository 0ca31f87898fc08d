"""
Repositories package

Each repository wraps the queries for one family of tables and is built
around an injected SQLAlchemy session:

    from deckworthy.db import db
    from deckworthy.repositories import GamesRepository
    games = GamesRepository(db.session).list_games()
"""

from .games_repository import GamesRepository
from .ratings_repository import RatingsRepository
from .prices_repository import PricesRepository
from .bundles_repository import BundlesRepository
from .synclog_repository import SyncLogRepository

__all__ = [
    "GamesRepository",
    "RatingsRepository",
    "PricesRepository",
    "BundlesRepository",
    "SyncLogRepository",
]
