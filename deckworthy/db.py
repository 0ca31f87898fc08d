import logging
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event, inspect, text
from sqlalchemy.engine import Engine

# Retrieve main logger
logger = logging.getLogger("main")

db = SQLAlchemy()

GAMES_FULL_VIEW = """
CREATE VIEW IF NOT EXISTS games_full AS
SELECT
    g.*,
    p.tier AS proton_tier,
    p.confidence AS proton_confidence,
    p.score AS proton_score,
    p.total_reports AS proton_reports,
    (SELECT MIN(price_usd) FROM current_prices WHERE app_id = g.app_id) AS min_price,
    (SELECT MAX(discount_percent) FROM current_prices WHERE app_id = g.app_id) AS max_discount,
    (SELECT COUNT(*) FROM current_prices WHERE app_id = g.app_id AND is_on_sale = 1) AS active_sales
FROM games g
LEFT JOIN protondb_ratings p ON g.app_id = p.app_id
"""


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enforce foreign keys and WAL journaling on every SQLite connection"""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.execute("PRAGMA busy_timeout=30000;")
    cursor.close()


def to_dict(db_results):
    return {c.name: getattr(db_results, c.name) for c in db_results.__table__.columns}


def init_db(app):
    """Create missing tables and the games_full view"""
    # Import models so every table is registered on the metadata
    from deckworthy import models  # noqa: F401

    with app.app_context():
        inspector = inspect(db.engine)
        if not inspector.has_table("games"):
            logger.info("Initializing database tables...")
        db.create_all()
        with db.engine.begin() as connection:
            connection.execute(text(GAMES_FULL_VIEW))
        logger.info(f"Database ready at {db.engine.url.render_as_string(hide_password=True)}")


def check_connection(session):
    """Raise if the database cannot answer a trivial query"""
    session.execute(text("SELECT 1"))
