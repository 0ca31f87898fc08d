"""
Models package

One module per table:
- games.py
- ratings.py
- prices.py
- bundles.py
- synclog.py
"""

from .games import Game
from .ratings import ProtonRating
from .prices import CurrentPrice, PriceHistory
from .bundles import Bundle, BundleItem
from .synclog import SyncLog

__all__ = [
    "Game",
    "ProtonRating",
    "CurrentPrice",
    "PriceHistory",
    "Bundle",
    "BundleItem",
    "SyncLog",
]
