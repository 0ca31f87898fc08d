"""
Stats Routes - catalog-wide aggregates
"""

from flask import Blueprint, jsonify

from deckworthy.api_responses import handle_api_errors
from deckworthy.db import db
from deckworthy.repositories import GamesRepository, PricesRepository, RatingsRepository, SyncLogRepository

stats_bp = Blueprint("stats", __name__, url_prefix="/api/stats")


@stats_bp.route("", methods=["GET"])
@handle_api_errors("Failed to fetch statistics")
def get_stats():
    overview = PricesRepository(db.session).get_overview()
    return jsonify(
        {
            "total_games": GamesRepository(db.session).count(),
            "proton_distribution": RatingsRepository(db.session).get_stats(),
            "active_sales": overview["active_sales"],
            "average_discount": overview["average_discount"],
            "best_discount": overview["best_discount"],
            "price_ranges": overview["price_ranges"],
            "last_sync": SyncLogRepository(db.session).get_all(),
        }
    )
