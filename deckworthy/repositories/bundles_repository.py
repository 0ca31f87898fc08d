"""
Repository for Bundle database operations
Bundles are maintained by hand; there is no upstream feed.
"""

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from deckworthy.models import Bundle, BundleItem, Game, ProtonRating
from deckworthy.utils import ensure_utc, now_utc

BUNDLE_FIELDS = ("name", "url", "bundle_type", "end_date", "is_active")


class BundlesRepository:
    """Repository for Bundle and BundleItem database operations"""

    def __init__(self, session):
        self.session = session

    def _commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def get_active_bundles(self):
        """Active bundles that have not ended, soonest ending first"""
        stmt = (
            select(Bundle)
            .where(Bundle.is_active == True, or_(Bundle.end_date.is_(None), Bundle.end_date > now_utc()))
            .order_by(Bundle.end_date.is_(None), Bundle.end_date.asc(), Bundle.id)
        )
        return [bundle.to_dict() for bundle in self.session.execute(stmt).scalars()]

    def get_bundle(self, bundle_id):
        bundle = self.session.get(Bundle, bundle_id)
        return bundle.to_dict() if bundle else None

    def get_bundle_games(self, bundle_id):
        stmt = (
            select(Game, BundleItem.tier, ProtonRating.tier.label("proton_tier"), ProtonRating.score.label("proton_score"))
            .join(BundleItem, BundleItem.app_id == Game.app_id)
            .outerjoin(ProtonRating, ProtonRating.app_id == Game.app_id)
            .where(BundleItem.bundle_id == bundle_id)
            .order_by(BundleItem.tier, Game.name)
        )
        games = []
        for row in self.session.execute(stmt):
            data = row.Game.to_dict()
            data.update(tier=row.tier, proton_tier=row.proton_tier, proton_score=row.proton_score)
            games.append(data)
        return games

    def get_bundles_for_game(self, app_id):
        """Active bundles containing the game, with the tier it sits in"""
        stmt = (
            select(Bundle, BundleItem.tier)
            .join(BundleItem, BundleItem.bundle_id == Bundle.id)
            .where(BundleItem.app_id == app_id, Bundle.is_active == True)
            .order_by(Bundle.end_date.asc(), Bundle.id)
        )
        bundles = []
        for row in self.session.execute(stmt):
            data = row.Bundle.to_dict()
            data["tier"] = row.tier
            bundles.append(data)
        return bundles

    def create_bundle(self, name, url, bundle_type=None, end_date=None):
        """Create a bundle and return its id"""
        bundle = Bundle(name=name, url=url, bundle_type=bundle_type, end_date=ensure_utc(end_date), is_active=True)
        self.session.add(bundle)
        self._commit()
        return bundle.id

    def add_game_to_bundle(self, bundle_id, app_id, tier=None):
        self.add_games_to_bundle(bundle_id, [{"app_id": app_id, "tier": tier}])

    def add_games_to_bundle(self, bundle_id, games):
        """
        Add memberships in one transaction. `games` holds dicts with app_id and an
        optional tier. A duplicate membership or an unknown game aborts the batch.
        """
        for game in games:
            self.session.add(BundleItem(bundle_id=bundle_id, app_id=game["app_id"], tier=game.get("tier")))
        self._commit()

    def update_bundle(self, bundle_id, **updates):
        """Update the given fields; returns False when nothing matched or nothing was given"""
        values = {key: value for key, value in updates.items() if key in BUNDLE_FIELDS}
        unknown = set(updates) - set(BUNDLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown bundle fields: {', '.join(sorted(unknown))}")
        if not values:
            return False
        if "end_date" in values:
            values["end_date"] = ensure_utc(values["end_date"])
        values["last_updated"] = now_utc()

        result = self.session.execute(update(Bundle).where(Bundle.id == bundle_id).values(**values))
        self._commit()
        return result.rowcount > 0

    def deactivate_bundle(self, bundle_id):
        return self.update_bundle(bundle_id, is_active=False)

    def deactivate_expired_bundles(self):
        """Mark ended bundles inactive; returns how many changed"""
        now = now_utc()
        result = self.session.execute(
            update(Bundle)
            .where(Bundle.end_date < now, Bundle.is_active == True)
            .values(is_active=False, last_updated=now)
        )
        self._commit()
        return result.rowcount

    def delete_bundle(self, bundle_id):
        """Delete a bundle and its memberships"""
        result = self.session.execute(delete(Bundle).where(Bundle.id == bundle_id))
        self._commit()
        return result.rowcount > 0
