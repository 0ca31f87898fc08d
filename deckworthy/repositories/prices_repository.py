"""
Repository for current and historical price operations
"""
from datetime import timedelta

from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from deckworthy.models import CurrentPrice, Game, PriceHistory, ProtonRating
from deckworthy.utils import isoformat, now_utc

PRICE_UPDATE_COLUMNS = ("price_usd", "discount_percent", "is_on_sale", "sale_end_date", "url")

PRICE_RANGE = case(
    (CurrentPrice.price_usd == 0, "Free"),
    (CurrentPrice.price_usd < 5, "$0-$5"),
    (CurrentPrice.price_usd < 10, "$5-$10"),
    (CurrentPrice.price_usd < 20, "$10-$20"),
    (CurrentPrice.price_usd < 30, "$20-$30"),
    (CurrentPrice.price_usd < 40, "$30-$40"),
    (CurrentPrice.price_usd < 60, "$40-$60"),
    else_="$60+",
)


class PricesRepository:
    """Repository for CurrentPrice and PriceHistory database operations"""

    def __init__(self, session):
        self.session = session

    def get_current_prices(self, app_id):
        stmt = (
            select(CurrentPrice)
            .where(CurrentPrice.app_id == app_id)
            .order_by(CurrentPrice.price_usd.asc(), CurrentPrice.store)
        )
        return list(self.session.execute(stmt).scalars())

    def _history_row(self, record):
        row = record.to_row()
        row["recorded_at"] = now_utc()
        return row

    def record_price(self, record, commit=True):
        """Append one observation to the price history"""
        try:
            self.session.execute(sqlite_insert(PriceHistory).values(**self._history_row(record)))
            if commit:
                self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def _upsert_current(self, record):
        stmt = sqlite_insert(CurrentPrice).values(**record.to_row(), last_updated=now_utc())
        stmt = stmt.on_conflict_do_update(
            index_elements=[CurrentPrice.app_id, CurrentPrice.store],
            set_={column: stmt.excluded[column] for column in PRICE_UPDATE_COLUMNS} | {"last_updated": now_utc()},
        )
        self.session.execute(stmt)

    def update_current_price(self, record):
        """Record the observation in history and make it the current price for its store"""
        self.update_current_prices([record])

    def update_current_prices(self, records):
        """History append plus current upsert for every record, all in one transaction"""
        try:
            for record in records:
                self.session.execute(sqlite_insert(PriceHistory).values(**self._history_row(record)))
                self._upsert_current(record)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return len(records)

    def get_price_history(self, app_id, days=90, store=None):
        """Observations of the last `days` days, newest first"""
        cutoff = now_utc() - timedelta(days=days)
        stmt = select(PriceHistory).where(PriceHistory.app_id == app_id, PriceHistory.recorded_at >= cutoff)
        if store:
            stmt = stmt.where(PriceHistory.store == store)
        stmt = stmt.order_by(PriceHistory.recorded_at.desc(), PriceHistory.id.desc())
        return [entry.to_dict() for entry in self.session.execute(stmt).scalars()]

    def get_price_stats(self, app_id, days=90):
        """Per-store lowest, highest and average price over the last `days` days"""
        cutoff = now_utc() - timedelta(days=days)
        stmt = (
            select(
                PriceHistory.store,
                func.min(PriceHistory.price_usd).label("lowest_price"),
                func.max(PriceHistory.price_usd).label("highest_price"),
                func.avg(PriceHistory.price_usd).label("avg_price"),
                func.count().label("price_changes"),
            )
            .where(PriceHistory.app_id == app_id, PriceHistory.recorded_at >= cutoff)
            .group_by(PriceHistory.store)
            .order_by(PriceHistory.store)
        )
        return [dict(row._mapping) for row in self.session.execute(stmt)]

    def get_best_deals(self, limit=20, min_discount=50):
        """On-sale prices at or above min_discount, biggest discount first"""
        stmt = (
            select(
                Game.app_id,
                Game.name,
                Game.header_image_url,
                CurrentPrice.store,
                CurrentPrice.price_usd,
                CurrentPrice.discount_percent,
                CurrentPrice.sale_end_date,
                CurrentPrice.url,
                ProtonRating.tier.label("proton_tier"),
            )
            .join(Game, Game.app_id == CurrentPrice.app_id)
            .outerjoin(ProtonRating, ProtonRating.app_id == Game.app_id)
            .where(CurrentPrice.is_on_sale == True, CurrentPrice.discount_percent >= min_discount)
            .order_by(CurrentPrice.discount_percent.desc(), CurrentPrice.price_usd.asc(), Game.app_id)
            .limit(limit)
        )
        return [self._deal_dict(row) for row in self.session.execute(stmt)]

    def get_active_sales(self):
        """On-sale prices whose sale has not ended yet"""
        stmt = (
            select(
                Game.app_id,
                Game.name,
                CurrentPrice.store,
                CurrentPrice.price_usd,
                CurrentPrice.discount_percent,
                CurrentPrice.sale_end_date,
            )
            .join(Game, Game.app_id == CurrentPrice.app_id)
            .where(
                CurrentPrice.is_on_sale == True,
                or_(CurrentPrice.sale_end_date.is_(None), CurrentPrice.sale_end_date > now_utc()),
            )
            .order_by(CurrentPrice.discount_percent.desc(), Game.app_id)
        )
        return [self._deal_dict(row) for row in self.session.execute(stmt)]

    @staticmethod
    def _deal_dict(row):
        data = dict(row._mapping)
        data["sale_end_date"] = isoformat(data.get("sale_end_date"))
        return data

    def clean_old_history(self, days_to_keep=365):
        """Delete history older than days_to_keep; returns the number of rows removed"""
        cutoff = now_utc() - timedelta(days=days_to_keep)
        try:
            result = self.session.execute(delete(PriceHistory).where(PriceHistory.recorded_at < cutoff))
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return result.rowcount

    def get_overview(self):
        """Sale counters and the price histogram used by the stats endpoint"""
        on_sale = CurrentPrice.is_on_sale == True
        summary = self.session.execute(
            select(
                func.count(func.distinct(CurrentPrice.app_id)).label("active_sales"),
                func.avg(CurrentPrice.discount_percent).label("average_discount"),
                func.max(CurrentPrice.discount_percent).label("best_discount"),
            ).where(on_sale)
        ).one()

        price_range = PRICE_RANGE.label("price_range")
        ranges = self.session.execute(
            select(price_range, func.count(func.distinct(CurrentPrice.app_id)).label("count"))
            .group_by(price_range)
            .order_by(func.min(CurrentPrice.price_usd))
        )

        return {
            "active_sales": summary.active_sales or 0,
            "average_discount": round(summary.average_discount or 0),
            "best_discount": summary.best_discount or 0,
            "price_ranges": [{"price_range": row.price_range, "count": row.count} for row in ranges],
        }
