"""
Model: ProtonRating
"""

from deckworthy.db import db, to_dict
from deckworthy.utils import isoformat, now_utc


class ProtonRating(db.Model):
    """ProtonDB Steam Deck compatibility summary, one per game"""

    __tablename__ = "protondb_ratings"

    app_id = db.Column(db.Integer, db.ForeignKey("games.app_id", ondelete="CASCADE"), primary_key=True)
    tier = db.Column(db.String, nullable=False)
    confidence = db.Column(db.String)
    score = db.Column(db.Float)
    total_reports = db.Column(db.Integer, default=0)
    trending_tier = db.Column(db.String)
    last_updated = db.Column(db.DateTime, default=now_utc, onupdate=now_utc, index=True)

    game = db.relationship("Game", back_populates="rating")

    def to_dict(self):
        data = to_dict(self)
        data["last_updated"] = isoformat(self.last_updated)
        return data
