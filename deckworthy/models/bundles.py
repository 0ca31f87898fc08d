"""
Models: Bundle, BundleItem
Bundles are curated by hand; nothing syncs them automatically.
"""

from deckworthy.db import db, to_dict
from deckworthy.utils import isoformat, now_utc


class Bundle(db.Model):
    __tablename__ = "bundles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String, nullable=False)
    url = db.Column(db.String, nullable=False)
    bundle_type = db.Column(db.String)
    end_date = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_updated = db.Column(db.DateTime, default=now_utc, onupdate=now_utc)

    items = db.relationship("BundleItem", back_populates="bundle", cascade="all, delete-orphan", passive_deletes=True)

    def to_dict(self):
        data = to_dict(self)
        data["end_date"] = isoformat(self.end_date)
        data["last_updated"] = isoformat(self.last_updated)
        return data


class BundleItem(db.Model):
    """Membership of a game in a bundle tier"""

    __tablename__ = "bundle_games"

    id = db.Column(db.Integer, primary_key=True)
    bundle_id = db.Column(db.Integer, db.ForeignKey("bundles.id", ondelete="CASCADE"), nullable=False, index=True)
    app_id = db.Column(db.Integer, db.ForeignKey("games.app_id", ondelete="CASCADE"), nullable=False, index=True)
    tier = db.Column(db.String)

    bundle = db.relationship("Bundle", back_populates="items")

    __table_args__ = (db.UniqueConstraint("bundle_id", "app_id", name="uq_bundle_games_bundle_app"),)
