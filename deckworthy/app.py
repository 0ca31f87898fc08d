"""
Deckworthy - Steam Deck game price aggregator
Application Factory
"""
import atexit
import logging
import time

from flask import Flask, g, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from deckworthy.constants import BUILD_VERSION
from deckworthy.db import db, init_db
from deckworthy.exceptions import register_exception_handlers
from deckworthy.metrics import init_metrics
from deckworthy.settings import database_uri, load_settings
from deckworthy.utils import setup_logging

# Routes
from deckworthy.routes.deals import deals_bp
from deckworthy.routes.games import games_bp
from deckworthy.routes.stats import stats_bp
from deckworthy.routes.system import system_bp

logger = logging.getLogger("main")

limiter = Limiter(key_func=get_remote_address)


def init_cors(app):
    """Answer cross-origin requests from the configured origins"""
    origins = app.config["DECKWORTHY_SETTINGS"]["server"]["cors_origins"] or []

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if "*" in origins:
            response.headers["Access-Control-Allow-Origin"] = "*"
        elif origin and origin in origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers.add("Vary", "Origin")
        else:
            return response
        response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response


def init_request_logging(app):
    @app.after_request
    def log_request(response):
        started = getattr(g, "request_started_at", None)
        if started is not None:
            elapsed_ms = round((time.time() - started) * 1000)
            logger.info(f"{request.method} {request.path} {response.status_code} - {elapsed_ms}ms")
        return response


def init_scheduler(app):
    from deckworthy.jobs.scheduler import JobScheduler

    job_scheduler = JobScheduler()
    job_scheduler.init_app(app)
    atexit.register(job_scheduler.shutdown)
    return job_scheduler


def create_app(config=None):
    """Application factory"""
    setup_logging()
    config = dict(config or {})

    settings = config.pop("DECKWORTHY_SETTINGS", None) or load_settings()

    app = Flask(__name__)
    app.json.sort_keys = False
    app.config["DECKWORTHY_SETTINGS"] = settings
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri(settings)
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SCHEDULER_ENABLED"] = settings["sync"]["scheduler_enabled"]
    app.config["RATELIMIT_DEFAULT"] = ";".join(settings["server"]["rate_limits"])
    app.config["RATELIMIT_STORAGE_URI"] = "memory://"
    app.config.update(config)
    if app.testing:
        app.config.setdefault("RATELIMIT_ENABLED", False)

    # Initialize components
    db.init_app(app)
    limiter.init_app(app)
    init_db(app)

    # Register exception handlers
    register_exception_handlers(app)

    # Register blueprints
    app.register_blueprint(games_bp)
    app.register_blueprint(deals_bp)
    app.register_blueprint(stats_bp)
    app.register_blueprint(system_bp)
    limiter.exempt(system_bp)

    # Initialize metrics, CORS and access logging
    init_metrics(app)
    init_cors(app)
    init_request_logging(app)

    if app.config["SCHEDULER_ENABLED"] and not app.testing:
        init_scheduler(app)
    else:
        logger.info("Job scheduler disabled")

    logger.info(f"Build Version: {BUILD_VERSION}")
    return app


if __name__ == "__main__":
    from deckworthy.jobs.cli import main

    raise SystemExit(main(["serve"]))
