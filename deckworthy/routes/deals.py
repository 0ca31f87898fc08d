"""
Deals Routes - best discounts, active sales and bundles
"""

from flask import Blueprint, jsonify, request

from deckworthy.api_responses import handle_api_errors
from deckworthy.constants import DEFAULT_DEALS_LIMIT, DEFAULT_DEALS_MIN_DISCOUNT, MAX_PAGE_SIZE
from deckworthy.db import db
from deckworthy.exceptions import NotFoundException
from deckworthy.repositories import BundlesRepository, PricesRepository
from deckworthy.utils import parse_int

deals_bp = Blueprint("deals", __name__, url_prefix="/api/deals")


@deals_bp.route("/best", methods=["GET"])
@handle_api_errors("Failed to fetch deals")
def best_deals():
    limit = parse_int(request.args.get("limit"), default=DEFAULT_DEALS_LIMIT, minimum=1, maximum=MAX_PAGE_SIZE)
    min_discount = parse_int(request.args.get("min_discount"), default=DEFAULT_DEALS_MIN_DISCOUNT, minimum=0, maximum=100)
    deals = PricesRepository(db.session).get_best_deals(limit=limit, min_discount=min_discount)
    return jsonify({"deals": deals})


@deals_bp.route("/active-sales", methods=["GET"])
@handle_api_errors("Failed to fetch active sales")
def active_sales():
    return jsonify({"sales": PricesRepository(db.session).get_active_sales()})


@deals_bp.route("/bundles", methods=["GET"])
@handle_api_errors("Failed to fetch bundles")
def list_bundles():
    bundles = BundlesRepository(db.session)
    active = bundles.get_active_bundles()
    for bundle in active:
        bundle["games"] = bundles.get_bundle_games(bundle["id"])
    return jsonify({"bundles": active})


@deals_bp.route("/bundles/<int:bundle_id>", methods=["GET"])
@handle_api_errors("Failed to fetch bundle")
def get_bundle(bundle_id):
    bundles = BundlesRepository(db.session)
    bundle = bundles.get_bundle(bundle_id)
    if bundle is None:
        raise NotFoundException("Bundle not found")
    bundle["games"] = bundles.get_bundle_games(bundle_id)
    return jsonify(bundle)
