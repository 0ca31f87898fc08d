"""
Tests for game list parameters and filter predicates
"""
import pytest
from sqlalchemy.dialects import sqlite
from werkzeug.datastructures import MultiDict

from deckworthy.repositories.filters import (
    GameListParams,
    RangeBound,
    SetMembership,
    TextMatch,
    split_predicates,
)


def compile_sql(clause):
    return str(clause.compile(dialect=sqlite.dialect()))


class TestGameListParams:
    def test_defaults(self):
        params = GameListParams.from_query_args(MultiDict())

        assert params.page == 1
        assert params.limit == 50
        assert params.sort_by == "name"
        assert params.sort_order == "asc"
        assert params.build_predicates() == []

    @pytest.mark.parametrize(
        "args,page,limit",
        [
            ({"page": "3", "limit": "20"}, 3, 20),
            ({"page": "0", "limit": "500"}, 1, 100),
            ({"page": "abc", "limit": "-5"}, 1, 50),
            ({"page": "", "limit": "0"}, 1, 50),
            ({"page": "99999999999999999999", "limit": "100"}, 1000000, 100),
        ],
    )
    def test_invalid_numbers_fall_back(self, args, page, limit):
        params = GameListParams.from_query_args(MultiDict(args))

        assert (params.page, params.limit) == (page, limit)

    def test_unknown_sort_field_falls_back_to_name(self):
        params = GameListParams.from_query_args(MultiDict({"sort_by": "price; DROP TABLE games", "sort_order": "DESC"}))

        assert params.sort_by == "name"
        assert params.sort_order == "desc"

    def test_filters_become_predicates(self):
        params = GameListParams.from_query_args(
            MultiDict(
                {
                    "proton_tier": "Platinum, gold,,",
                    "search": " witcher ",
                    "min_price": "10",
                    "max_price": "49.99",
                    "min_discount": "25",
                    "on_sale": "true",
                }
            )
        )

        assert params.build_predicates() == [
            SetMembership("proton_tier", ("platinum", "gold")),
            TextMatch("name", "witcher"),
            RangeBound("min_price", lower=10.0, upper=49.99),
            RangeBound("max_discount", lower=25.0),
            RangeBound("active_sales", lower=1),
        ]

    def test_on_sale_only_when_true(self):
        params = GameListParams.from_query_args(MultiDict({"on_sale": "false", "min_price": "nan"}))

        assert params.on_sale is False
        assert params.min_price is None
        assert params.build_predicates() == []

    def test_total_pages_and_offset(self):
        params = GameListParams(page=3, limit=20)

        assert params.offset == 40
        assert params.total_pages(41) == 3
        assert params.total_pages(40) == 2
        assert params.total_pages(0) == 0


class TestPredicates:
    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="Unknown filter field"):
            TextMatch("developers", "valve")

    def test_range_needs_a_bound(self):
        with pytest.raises(ValueError):
            RangeBound("min_price")

    def test_set_needs_values(self):
        with pytest.raises(ValueError):
            SetMembership("proton_tier", [])

    def test_set_values_are_frozen(self):
        predicate = SetMembership("proton_tier", ["gold", "silver"])

        assert predicate.values == ("gold", "silver")
        assert hash(predicate) == hash(SetMembership("proton_tier", ("gold", "silver")))

    def test_plain_fields_go_to_where_aggregates_to_having(self):
        where, having = split_predicates(
            [
                SetMembership("proton_tier", ["gold"]),
                TextMatch("name", "dota"),
                RangeBound("max_discount", lower=10),
                RangeBound("active_sales", lower=1),
            ]
        )

        assert len(where) == 2
        assert len(having) == 2
        assert "protondb_ratings.tier IN" in compile_sql(where[0])
        assert "max(current_prices.discount_percent)" in compile_sql(having[0])
        assert "count(CASE WHEN" in compile_sql(having[1])

    def test_values_are_bound_parameters(self):
        clause = TextMatch("name", "'; DROP TABLE games; --").compile()
        sql = compile_sql(clause)

        assert "DROP TABLE" not in sql
        assert clause.compile().params

    def test_range_bounds_are_inclusive(self):
        sql = compile_sql(RangeBound("min_price", lower=5, upper=10).compile())

        assert ">=" in sql
        assert "<=" in sql
