"""
Repository for Game database operations
"""

from sqlalchemy import delete, func, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from deckworthy.models import CurrentPrice, Game, ProtonRating
from deckworthy.repositories.bundles_repository import BundlesRepository
from deckworthy.repositories.filters import FIELDS, GameListParams, sort_expression, split_predicates
from deckworthy.utils import now_utc

GAME_UPDATE_COLUMNS = (
    "name",
    "short_description",
    "header_image_url",
    "steam_url",
    "release_date",
    "developers",
    "publishers",
    "genres",
    "tags",
    "is_free",
)


class GamesRepository:
    """Repository for Game database operations"""

    def __init__(self, session):
        self.session = session

    def _listing_statement(self, params):
        where, having = split_predicates(params.build_predicates())
        stmt = (
            select(
                Game,
                ProtonRating.tier.label("proton_tier"),
                ProtonRating.confidence.label("proton_confidence"),
                ProtonRating.score.label("proton_score"),
                FIELDS["min_price"].expression.label("min_price"),
                FIELDS["max_discount"].expression.label("max_discount"),
                FIELDS["active_sales"].expression.label("active_sales"),
            )
            .outerjoin(ProtonRating, ProtonRating.app_id == Game.app_id)
            .outerjoin(CurrentPrice, CurrentPrice.app_id == Game.app_id)
            .group_by(Game.app_id)
        )
        if where:
            stmt = stmt.where(*where)
        if having:
            stmt = stmt.having(*having)
        return stmt

    def list_games(self, params=None):
        """
        One page of games joined with their rating and price aggregates.
        Returns {games, total, page, limit, totalPages}.
        """
        params = params or GameListParams()
        stmt = self._listing_statement(params)

        total = self.session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

        order_column = sort_expression(params.sort_by)
        if params.sort_order == "desc":
            stmt = stmt.order_by(order_column.desc(), Game.app_id.desc())
        else:
            stmt = stmt.order_by(order_column.asc(), Game.app_id.asc())
        stmt = stmt.limit(params.limit).offset(params.offset)

        games = []
        for row in self.session.execute(stmt):
            data = row.Game.to_dict()
            data.update(
                proton_tier=row.proton_tier,
                proton_confidence=row.proton_confidence,
                proton_score=row.proton_score,
                min_price=row.min_price,
                max_discount=row.max_discount,
                active_sales=row.active_sales,
            )
            games.append(data)

        return {
            "games": games,
            "total": total,
            "page": params.page,
            "limit": params.limit,
            "totalPages": params.total_pages(total),
        }

    def get_by_id(self, app_id):
        return self.session.get(Game, app_id)

    def get_game_detail(self, app_id):
        """Game with its rating, current prices (cheapest first) and active bundles, or None"""
        game = self.get_by_id(app_id)
        if game is None:
            return None

        data = game.to_dict()
        rating = game.rating
        data["proton_rating"] = rating.to_dict() if rating else None
        data["proton_tier"] = rating.tier if rating else None
        data["proton_score"] = rating.score if rating else None

        prices = sorted(game.current_prices, key=lambda p: (p.price_usd, p.store))
        data["current_prices"] = [p.to_dict() for p in prices]
        data["lowest_price"] = prices[0].price_usd if prices else None
        data["lowest_price_store"] = prices[0].store if prices else None

        data["bundles"] = BundlesRepository(self.session).get_bundles_for_game(app_id)
        return data

    def get_summary(self, app_id):
        """Row of the games_full view for one game"""
        row = self.session.execute(
            text("SELECT * FROM games_full WHERE app_id = :app_id"), {"app_id": app_id}
        ).mappings().first()
        return dict(row) if row else None

    def _upsert(self, record):
        row = record.to_row()
        stmt = sqlite_insert(Game).values(**row, last_updated=now_utc())
        stmt = stmt.on_conflict_do_update(
            index_elements=[Game.app_id],
            set_={column: stmt.excluded[column] for column in GAME_UPDATE_COLUMNS} | {"last_updated": now_utc()},
        )
        self.session.execute(stmt)

    def upsert_game(self, record):
        """Insert a game or overwrite every field of the existing row"""
        self.upsert_games([record])

    def upsert_games(self, records):
        """Upsert all records in one transaction"""
        try:
            for record in records:
                self._upsert(record)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return len(records)

    def delete_game(self, app_id):
        """Delete a game; ratings, prices and bundle memberships cascade"""
        try:
            result = self.session.execute(delete(Game).where(Game.app_id == app_id))
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return result.rowcount > 0

    def count(self):
        return self.session.execute(select(func.count()).select_from(Game)).scalar_one()

    def get_app_ids(self, limit=None):
        stmt = select(Game.app_id).order_by(Game.app_id)
        if limit:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())
