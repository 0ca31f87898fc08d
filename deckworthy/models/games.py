"""
Model: Game
"""

from deckworthy.db import db, to_dict
from deckworthy.utils import isoformat, now_utc


class Game(db.Model):
    __tablename__ = "games"

    app_id = db.Column(db.Integer, primary_key=True, autoincrement=False)  # Steam app id
    name = db.Column(db.String, nullable=False)
    short_description = db.Column(db.Text)
    header_image_url = db.Column(db.String)
    steam_url = db.Column(db.String)
    release_date = db.Column(db.String)  # Opaque store string, e.g. "Jul 9, 2013"

    # Serialized arrays
    developers = db.Column(db.JSON, default=list)
    publishers = db.Column(db.JSON, default=list)
    genres = db.Column(db.JSON, default=list)
    tags = db.Column(db.JSON, default=list)

    is_free = db.Column(db.Boolean, default=False, nullable=False)
    last_updated = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    rating = db.relationship(
        "ProtonRating", uselist=False, back_populates="game", cascade="all, delete-orphan", passive_deletes=True
    )
    current_prices = db.relationship(
        "CurrentPrice", back_populates="game", cascade="all, delete-orphan", passive_deletes=True
    )
    price_history = db.relationship(
        "PriceHistory", back_populates="game", cascade="all, delete-orphan", passive_deletes=True, lazy="dynamic"
    )

    __table_args__ = (db.Index("idx_games_name", "name"),)

    def to_dict(self):
        data = to_dict(self)
        for field in ("developers", "publishers", "genres", "tags"):
            data[field] = data[field] or []
        data["last_updated"] = isoformat(self.last_updated)
        return data
