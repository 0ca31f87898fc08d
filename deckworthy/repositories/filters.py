"""
Typed filter predicates for the game list query.

A filter is one of three closed predicate shapes (TextMatch, RangeBound,
SetMembership) naming a field from FIELDS. Plain fields compile into the WHERE
clause; aggregated fields (derived from the per-store price rows) compile into
HAVING. Values always travel as bound parameters.
"""
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

from sqlalchemy import case, func

from deckworthy.constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SORT_FIELD,
    MAX_PAGE,
    MAX_PAGE_SIZE,
    SORT_FIELDS,
)
from deckworthy.models import CurrentPrice, Game, ProtonRating
from deckworthy.utils import parse_float, parse_int


@dataclass(frozen=True)
class FieldSpec:
    expression: object
    aggregate: bool = False


FIELDS = {
    "name": FieldSpec(Game.name),
    "release_date": FieldSpec(Game.release_date),
    "proton_tier": FieldSpec(ProtonRating.tier),
    "proton_score": FieldSpec(ProtonRating.score),
    "min_price": FieldSpec(func.min(CurrentPrice.price_usd), aggregate=True),
    "max_discount": FieldSpec(func.max(CurrentPrice.discount_percent), aggregate=True),
    "active_sales": FieldSpec(func.count(case((CurrentPrice.is_on_sale == True, 1))), aggregate=True),
}


def resolve_field(name):
    try:
        return FIELDS[name]
    except KeyError:
        raise ValueError(f"Unknown filter field: {name}")


@dataclass(frozen=True)
class TextMatch:
    """Case-insensitive substring match"""
    field: str
    text: str

    def __post_init__(self):
        resolve_field(self.field)

    @property
    def aggregate(self):
        return resolve_field(self.field).aggregate

    def compile(self):
        return resolve_field(self.field).expression.icontains(self.text, autoescape=True)


@dataclass(frozen=True)
class RangeBound:
    """Inclusive bounds; a NULL value never satisfies either bound"""
    field: str
    lower: Optional[float] = None
    upper: Optional[float] = None

    def __post_init__(self):
        resolve_field(self.field)
        if self.lower is None and self.upper is None:
            raise ValueError(f"RangeBound on {self.field} needs a lower or an upper bound")

    @property
    def aggregate(self):
        return resolve_field(self.field).aggregate

    def compile(self):
        expression = resolve_field(self.field).expression
        clauses = []
        if self.lower is not None:
            clauses.append(expression >= self.lower)
        if self.upper is not None:
            clauses.append(expression <= self.upper)
        return clauses[0] if len(clauses) == 1 else clauses[0] & clauses[1]


@dataclass(frozen=True)
class SetMembership:
    field: str
    values: Tuple[str, ...]

    def __post_init__(self):
        resolve_field(self.field)
        object.__setattr__(self, "values", tuple(self.values))
        if not self.values:
            raise ValueError(f"SetMembership on {self.field} needs at least one value")

    @property
    def aggregate(self):
        return resolve_field(self.field).aggregate

    def compile(self):
        return resolve_field(self.field).expression.in_(self.values)


def split_predicates(predicates):
    """Compile predicates into (where_clauses, having_clauses)"""
    where, having = [], []
    for predicate in predicates:
        (having if predicate.aggregate else where).append(predicate.compile())
    return where, having


def sort_expression(sort_by):
    return FIELDS[sort_by if sort_by in SORT_FIELDS else DEFAULT_SORT_FIELD].expression


@dataclass
class GameListParams:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    sort_by: str = DEFAULT_SORT_FIELD
    sort_order: str = "asc"
    proton_tiers: Tuple[str, ...] = field(default_factory=tuple)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_discount: Optional[float] = None
    on_sale: bool = False
    search: Optional[str] = None

    @classmethod
    def from_query_args(cls, args):
        """
        Build params from a request's query string.
        Invalid numbers fall back to defaults and unknown sort fields to 'name';
        neither is an error.
        """
        sort_by = args.get("sort_by") or DEFAULT_SORT_FIELD
        if sort_by not in SORT_FIELDS:
            sort_by = DEFAULT_SORT_FIELD

        tiers = args.get("proton_tier") or ""
        search = (args.get("search") or "").strip()

        return cls(
            page=parse_int(args.get("page"), default=1, minimum=1, maximum=MAX_PAGE),
            limit=parse_int(args.get("limit"), default=DEFAULT_PAGE_SIZE, minimum=1, maximum=MAX_PAGE_SIZE),
            sort_by=sort_by,
            sort_order="desc" if (args.get("sort_order") or "").lower() == "desc" else "asc",
            proton_tiers=tuple(t.strip().lower() for t in tiers.split(",") if t.strip()),
            min_price=parse_float(args.get("min_price")),
            max_price=parse_float(args.get("max_price")),
            min_discount=parse_float(args.get("min_discount")),
            on_sale=(args.get("on_sale") or "").lower() == "true",
            search=search or None,
        )

    @property
    def offset(self):
        return (self.page - 1) * self.limit

    def total_pages(self, total):
        return math.ceil(total / self.limit) if self.limit else 0

    def build_predicates(self):
        predicates = []
        if self.proton_tiers:
            predicates.append(SetMembership("proton_tier", self.proton_tiers))
        if self.search:
            predicates.append(TextMatch("name", self.search))
        if self.min_price is not None or self.max_price is not None:
            predicates.append(RangeBound("min_price", lower=self.min_price, upper=self.max_price))
        if self.min_discount is not None:
            predicates.append(RangeBound("max_discount", lower=self.min_discount))
        if self.on_sale:
            predicates.append(RangeBound("active_sales", lower=1))
        return predicates
