"""
Repository for ProtonDB rating database operations
"""
from datetime import timedelta

from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from deckworthy.constants import PROTON_TIERS
from deckworthy.models import Game, ProtonRating
from deckworthy.utils import now_utc

RATING_UPDATE_COLUMNS = ("tier", "confidence", "score", "total_reports", "trending_tier")

# platinum first, unknown values last
TIER_RANK = case({tier: rank for rank, tier in enumerate(PROTON_TIERS)}, value=ProtonRating.tier, else_=len(PROTON_TIERS))


class RatingsRepository:
    """Repository for ProtonRating database operations"""

    def __init__(self, session):
        self.session = session

    def get_rating(self, app_id):
        return self.session.get(ProtonRating, app_id)

    def _upsert(self, record):
        stmt = sqlite_insert(ProtonRating).values(**record.to_row(), last_updated=now_utc())
        stmt = stmt.on_conflict_do_update(
            index_elements=[ProtonRating.app_id],
            set_={column: stmt.excluded[column] for column in RATING_UPDATE_COLUMNS} | {"last_updated": now_utc()},
        )
        self.session.execute(stmt)

    def upsert_rating(self, record):
        self.upsert_ratings([record])

    def upsert_ratings(self, records):
        """Upsert all records in one transaction"""
        try:
            for record in records:
                self._upsert(record)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return len(records)

    def get_stale_app_ids(self, hours=24):
        """Ids of rated games whose rating is older than `hours`"""
        cutoff = now_utc() - timedelta(hours=hours)
        stmt = select(ProtonRating.app_id).where(ProtonRating.last_updated < cutoff).order_by(ProtonRating.app_id)
        return list(self.session.execute(stmt).scalars())

    def get_app_ids_needing_sync(self, stale_hours=168, limit=None):
        """Ids of games with no rating or a stale one"""
        cutoff = now_utc() - timedelta(hours=stale_hours)
        stmt = (
            select(Game.app_id)
            .outerjoin(ProtonRating, ProtonRating.app_id == Game.app_id)
            .where(or_(ProtonRating.app_id.is_(None), ProtonRating.last_updated < cutoff))
            .order_by(Game.app_id)
        )
        if limit:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def get_stats(self):
        """Tier distribution, best tier first"""
        stmt = (
            select(
                ProtonRating.tier,
                func.count().label("count"),
                func.round(func.avg(ProtonRating.score), 2).label("avg_score"),
            )
            .group_by(ProtonRating.tier)
            .order_by(TIER_RANK, ProtonRating.tier)
        )
        return [
            {"tier": row.tier, "count": row.count, "avg_score": row.avg_score}
            for row in self.session.execute(stmt)
        ]

    def delete_rating(self, app_id):
        try:
            result = self.session.execute(delete(ProtonRating).where(ProtonRating.app_id == app_id))
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return result.rowcount > 0
