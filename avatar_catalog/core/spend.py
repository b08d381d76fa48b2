"""
Spend aggregation across currencies.

This module turns an asset snapshot into the spend report behind the
statistics views. It is read-only and deterministic: the same asset list
always yields the same report, and nothing is kept between calls.

Aggregation Order:
1. Free vs priced partition - missing, zero and unparseable prices are free
2. Currency buckets - amounts in different currencies are never summed
3. Categories per currency - top N by total, remainder folded into "Other"
4. Months per currency - chronological, last N months that have spend
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .pricing import format_amount, normalize_currency, parse_price
from avatar_catalog.storage.codec import decode_datetime
from avatar_catalog.storage.models import Asset

logger = logging.getLogger(__name__)

OTHER_CATEGORY = "Other"
UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class CurrencyBucket:
    """Total spend in one currency."""
    currency: str
    total: float
    count: int
    display: str


@dataclass(frozen=True)
class CategorySpend:
    """Spend on one asset category in one currency."""
    category: str
    currency: str
    total: float
    count: int


@dataclass(frozen=True)
class MonthSpend:
    """Spend in one calendar month in one currency."""
    year: int
    month: int
    currency: str
    total: float
    count: int

    @property
    def key(self) -> str:
        """Year-month key, e.g. "2024-03"."""
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class SpendReport:
    """Complete spend report for an asset snapshot."""
    currency_totals: List[CurrencyBucket]
    free_count: int
    max_prices: Dict[str, float]
    average_prices: Dict[str, float]
    category_spend: Dict[str, List[CategorySpend]]
    monthly_spend: Dict[str, List[MonthSpend]]
    assets_by_type: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def has_spend(self) -> bool:
        """Whether any asset carries a positive price."""
        return bool(self.currency_totals)


@dataclass
class _Tally:
    total: float = 0.0
    count: int = 0

    def add(self, price: float) -> None:
        self.total += price
        self.count += 1


def aggregate(
    assets: Iterable[Asset],
    *,
    top_categories: int = 5,
    trailing_months: int = 12,
) -> SpendReport:
    """Aggregate spend per currency, category and month.

    Malformed records never fail the report: an unparseable price counts
    as free, an unparseable date only drops the asset from the monthly
    series.

    Args:
        assets: Asset snapshot to aggregate
        top_categories: Categories kept per currency before folding the
            rest into "Other"
        trailing_months: Months with spend kept per currency

    Returns:
        SpendReport for the snapshot
    """
    free_count = 0
    type_counts: Counter = Counter()
    currency_tallies: Dict[str, _Tally] = {}
    max_prices: Dict[str, float] = {}
    category_tallies: Dict[str, Dict[str, _Tally]] = defaultdict(dict)
    month_tallies: Dict[str, Dict[Tuple[int, int], _Tally]] = defaultdict(dict)

    for asset in assets:
        category = asset.type or UNCATEGORIZED
        type_counts[category] += 1

        price = parse_price(asset.price)
        if price <= 0:
            if asset.price:
                logger.debug(f"Price {asset.price!r} on asset {asset.id} counted as free")
            free_count += 1
            continue

        currency = normalize_currency(asset.currency)
        currency_tallies.setdefault(currency, _Tally()).add(price)
        max_prices[currency] = max(max_prices.get(currency, price), price)
        category_tallies[currency].setdefault(category, _Tally()).add(price)

        added = decode_datetime(asset.date_added)
        if added is None:
            if asset.date_added is not None:
                logger.debug(f"Unparseable date {asset.date_added!r} on asset {asset.id}, "
                             "excluded from monthly spend")
            continue
        month_tallies[currency].setdefault((added.year, added.month), _Tally()).add(price)

    currency_totals = sorted(
        (
            CurrencyBucket(
                currency=currency,
                total=tally.total,
                count=tally.count,
                display=format_amount(tally.total, currency),
            )
            for currency, tally in currency_tallies.items()
        ),
        key=lambda bucket: (-bucket.total, bucket.currency),
    )

    average_prices = {
        currency: tally.total / tally.count
        for currency, tally in currency_tallies.items()
    }

    category_spend = {
        currency: _fold_categories(currency, tallies, top_categories)
        for currency, tallies in category_tallies.items()
    }

    monthly_spend = {
        currency: _trailing_months(currency, tallies, trailing_months)
        for currency, tallies in month_tallies.items()
    }

    assets_by_type = sorted(type_counts.items(), key=lambda item: (-item[1], item[0]))

    return SpendReport(
        currency_totals=currency_totals,
        free_count=free_count,
        max_prices=max_prices,
        average_prices=average_prices,
        category_spend=category_spend,
        monthly_spend=monthly_spend,
        assets_by_type=assets_by_type,
    )


def _fold_categories(
    currency: str,
    tallies: Dict[str, _Tally],
    top_n: int,
) -> List[CategorySpend]:
    """Keep the top N categories, fold the rest into "Other".

    The "Other" row only appears when the folded remainder is positive.
    """
    ranked = sorted(tallies.items(), key=lambda item: (-item[1].total, item[0]))
    rows = [
        CategorySpend(category=name, currency=currency, total=tally.total, count=tally.count)
        for name, tally in ranked[:top_n]
    ]

    remainder = ranked[top_n:]
    remainder_total = sum(tally.total for _, tally in remainder)
    if remainder and remainder_total > 0:
        rows.append(CategorySpend(
            category=OTHER_CATEGORY,
            currency=currency,
            total=remainder_total,
            count=sum(tally.count for _, tally in remainder),
        ))
    return rows


def _trailing_months(
    currency: str,
    tallies: Dict[Tuple[int, int], _Tally],
    window: int,
) -> List[MonthSpend]:
    """Chronological months with spend, keeping only the most recent ones.

    The window counts months that have spend, not calendar months.
    """
    ordered = [
        MonthSpend(year=year, month=month, currency=currency, total=tally.total, count=tally.count)
        for (year, month), tally in sorted(tallies.items())
    ]
    return ordered[-window:] if len(ordered) > window else ordered

