"""
Models: CurrentPrice, PriceHistory
"""

from deckworthy.db import db, to_dict
from deckworthy.utils import isoformat, now_utc


class CurrentPrice(db.Model):
    """Latest observed price, exactly one row per (game, store)"""

    __tablename__ = "current_prices"

    app_id = db.Column(db.Integer, db.ForeignKey("games.app_id", ondelete="CASCADE"), primary_key=True)
    store = db.Column(db.String, primary_key=True)
    price_usd = db.Column(db.Float, nullable=False)
    discount_percent = db.Column(db.Integer, default=0, nullable=False)
    is_on_sale = db.Column(db.Boolean, default=False, nullable=False, index=True)
    sale_end_date = db.Column(db.DateTime)
    url = db.Column(db.String)
    last_updated = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    game = db.relationship("Game", back_populates="current_prices")

    def to_dict(self):
        data = to_dict(self)
        data["sale_end_date"] = isoformat(self.sale_end_date)
        data["last_updated"] = isoformat(self.last_updated)
        return data


class PriceHistory(db.Model):
    """Append-only log of price observations"""

    __tablename__ = "price_history"

    id = db.Column(db.Integer, primary_key=True)
    app_id = db.Column(db.Integer, db.ForeignKey("games.app_id", ondelete="CASCADE"), nullable=False)
    store = db.Column(db.String, nullable=False)
    price_usd = db.Column(db.Float, nullable=False)
    discount_percent = db.Column(db.Integer, default=0, nullable=False)
    is_on_sale = db.Column(db.Boolean, default=False, nullable=False)
    sale_end_date = db.Column(db.DateTime)
    url = db.Column(db.String)
    recorded_at = db.Column(db.DateTime, default=now_utc, nullable=False)

    game = db.relationship("Game", back_populates="price_history")

    __table_args__ = (
        db.Index("idx_price_history_game_store_recorded", "app_id", "store", "recorded_at"),
        db.Index("idx_price_history_recorded", "recorded_at"),
    )

    def to_dict(self):
        data = to_dict(self)
        data["sale_end_date"] = isoformat(self.sale_end_date)
        data["recorded_at"] = isoformat(self.recorded_at)
        return data
