"""
System Routes - health check
"""

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from deckworthy.constants import BUILD_VERSION
from deckworthy.db import check_connection, db
from deckworthy.utils import now_utc
import logging

logger = logging.getLogger("main")

system_bp = Blueprint("system", __name__)


@system_bp.route("/health", methods=["GET"])
def health_check():
    """Liveness plus a trivial database query"""
    checks = {
        "status": "healthy",
        "database": "connected",
        "version": BUILD_VERSION,
        "timestamp": now_utc().isoformat(),
    }
    try:
        check_connection(db.session)
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        db.session.rollback()
        checks.update(status="unhealthy", database="disconnected", error=str(e))
        return jsonify(checks), 500
    return jsonify(checks)
