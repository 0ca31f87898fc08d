"""
Pytest fixtures and configuration for Deckworthy tests
"""
import copy
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from deckworthy.app import create_app
from deckworthy.constants import DEFAULT_SETTINGS
from deckworthy.db import db
from deckworthy.records import GameRecord, PriceRecord, RatingRecord
from deckworthy.repositories import GamesRepository, PricesRepository, RatingsRepository
from deckworthy.services import http, itad_service, protondb_service, steam_service
from deckworthy.utils import now_utc


class FakeClock:
    """Monotonic clock whose sleep advances time instantly"""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_settings():
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    settings["database"]["path"] = ":memory:"
    settings["sync"]["scheduler_enabled"] = False
    settings["apis"]["itad_api_key"] = "test-itad-key"
    return settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings):
    """Application on a private in-memory database, scheduler and API limits off"""
    app = create_app(
        {
            "TESTING": True,
            "DECKWORTHY_SETTINGS": settings,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
        }
    )
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def no_upstream_waits(monkeypatch):
    """Never sleep or hit the shared per-service limiters in tests"""
    sleep = MagicMock()
    monkeypatch.setattr(http, "sleep", sleep)
    for service in (steam_service, protondb_service, itad_service):
        monkeypatch.setattr(service, "rate_limiter", http.RateLimiter(10000, 60))
    return sleep


@pytest.fixture
def fake_response():
    """Factory for fake requests.Response objects"""

    def make(status_code=200, payload=None, reason="OK"):
        resp = MagicMock()
        resp.status_code = status_code
        resp.reason = reason
        resp.json.return_value = payload
        return resp

    return make


SCENARIO_GAMES = [
    GameRecord(app_id=570, name="Dota 2", developers=["Valve"], publishers=["Valve"], genres=["Action", "Strategy"], is_free=True),
    GameRecord(app_id=730, name="Counter-Strike 2", developers=["Valve"], publishers=["Valve"], genres=["Action"], is_free=True),
    GameRecord(
        app_id=1938090,
        name="Call of Duty®",
        developers=["Infinity Ward"],
        publishers=["Activision"],
        genres=["Action"],
        release_date="Oct 27, 2022",
    ),
    GameRecord(app_id=292030, name="The Witcher 3: Wild Hunt", developers=["CD PROJEKT RED"], genres=["RPG"]),
    GameRecord(app_id=1091500, name="Cyberpunk 2077", developers=["CD PROJEKT RED"], genres=["RPG"]),
]

SCENARIO_RATINGS = [
    RatingRecord(app_id=570, tier="platinum", confidence="strong", score=0.92, total_reports=1500),
    RatingRecord(app_id=730, tier="native", confidence="strong", score=0.85, total_reports=900),
    RatingRecord(app_id=1938090, tier="gold", confidence="good", score=0.71, total_reports=120),
    RatingRecord(app_id=292030, tier="platinum", confidence="strong", score=0.95, total_reports=3000),
]


def scenario_prices():
    return [
        PriceRecord(app_id=1938090, store="steam", price_usd=69.99, discount_percent=0, is_on_sale=False),
        PriceRecord(
            app_id=1938090,
            store="gog",
            price_usd=59.99,
            discount_percent=14,
            is_on_sale=True,
            sale_end_date=now_utc() + timedelta(days=3),
            url="https://www.gog.com/game/call_of_duty",
        ),
        PriceRecord(app_id=1938090, store="epic", price_usd=64.99, discount_percent=7, is_on_sale=True),
        PriceRecord(app_id=292030, store="steam", price_usd=39.99, discount_percent=0, is_on_sale=False),
    ]


@pytest.fixture
def seeded(session):
    """570 free/platinum, 730 free/native, 1938090 paid/gold on sale at two stores,
    292030 full price, 1091500 unrated and unpriced"""
    GamesRepository(session).upsert_games(SCENARIO_GAMES)
    RatingsRepository(session).upsert_ratings(SCENARIO_RATINGS)
    PricesRepository(session).update_current_prices(scenario_prices())
    return session
