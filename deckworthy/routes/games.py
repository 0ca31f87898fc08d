"""
Games Routes - listing, detail and price history
"""

from flask import Blueprint, jsonify, request

from deckworthy.api_responses import handle_api_errors
from deckworthy.constants import DEFAULT_HISTORY_DAYS, MAX_HISTORY_DAYS
from deckworthy.db import db
from deckworthy.exceptions import NotFoundException
from deckworthy.repositories import GamesRepository, PricesRepository
from deckworthy.repositories.filters import GameListParams
from deckworthy.utils import parse_int

games_bp = Blueprint("games", __name__, url_prefix="/api/games")


@games_bp.route("", methods=["GET"])
@handle_api_errors("Failed to fetch games")
def list_games():
    """
    Paginated game list.
    Query: page, limit, sort_by, sort_order, proton_tier, min_price, max_price,
    min_discount, on_sale, search
    """
    params = GameListParams.from_query_args(request.args)
    return jsonify(GamesRepository(db.session).list_games(params))


@games_bp.route("/<int:app_id>", methods=["GET"])
@handle_api_errors("Failed to fetch game")
def get_game(app_id):
    game = GamesRepository(db.session).get_game_detail(app_id)
    if game is None:
        raise NotFoundException("Game not found")
    return jsonify(game)


@games_bp.route("/<int:app_id>/price-history", methods=["GET"])
@handle_api_errors("Failed to fetch price history")
def get_price_history(app_id):
    days = parse_int(request.args.get("days"), default=DEFAULT_HISTORY_DAYS, minimum=1, maximum=MAX_HISTORY_DAYS)
    store = request.args.get("store") or None

    prices = PricesRepository(db.session)
    return jsonify(
        {
            "history": prices.get_price_history(app_id, days=days, store=store),
            "stats": prices.get_price_stats(app_id, days=days),
        }
    )
