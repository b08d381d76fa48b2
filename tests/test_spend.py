"""
Tests for spend aggregation.
"""
from datetime import datetime

import pytest

from avatar_catalog.core.spend import OTHER_CATEGORY, aggregate
from avatar_catalog.storage.models import Asset


class TestSpendAggregation:
    """Test spend aggregation across currencies."""

    def create_asset(
        self,
        price="$10.00",
        currency="USD",
        type="clothing",
        date_added=datetime(2024, 1, 15),
        asset_id=1,
    ) -> Asset:
        """Create a test asset."""
        return Asset(
            id=asset_id,
            name=f"Asset {asset_id}",
            creator="Tester",
            type=type,
            price=price,
            currency=currency,
            date_added=date_added,
        )

    def test_empty_catalog(self):
        """An empty snapshot produces an empty report."""
        report = aggregate([])

        assert report.currency_totals == []
        assert report.free_count == 0
        assert report.category_spend == {}
        assert report.monthly_spend == {}
        assert not report.has_spend

    def test_free_assets_counted_once_each(self):
        """Null and zero prices both count as free and add nothing."""
        report = aggregate([
            self.create_asset(price=None, asset_id=1),
            self.create_asset(price="$0.00", asset_id=2),
            self.create_asset(price="$5.00", asset_id=3),
        ])

        assert report.free_count == 2
        assert len(report.currency_totals) == 1
        assert report.currency_totals[0].total == pytest.approx(5.0)
        assert report.currency_totals[0].count == 1

    def test_malformed_price_treated_as_free(self):
        """A bad price string behaves exactly like a missing one."""
        valid = [
            self.create_asset(price="$10.00", asset_id=1),
            self.create_asset(price="$2.50", asset_id=2),
        ]
        with_bad = aggregate(valid + [self.create_asset(price="abc", asset_id=3)])
        with_null = aggregate(valid + [self.create_asset(price=None, asset_id=3)])

        assert with_bad.currency_totals == with_null.currency_totals
        assert with_bad.free_count == with_null.free_count == 1

    def test_currencies_never_summed(self):
        """Each currency has its own bucket, sorted by total."""
        report = aggregate([
            self.create_asset(price="$10", currency="USD", asset_id=1),
            self.create_asset(price="€30", currency="EUR", asset_id=2),
            self.create_asset(price="$5", currency=None, asset_id=3),
        ])

        assert [b.currency for b in report.currency_totals] == ["EUR", "USD"]
        usd = report.currency_totals[1]
        assert usd.total == pytest.approx(15.0)
        assert usd.count == 2
        assert usd.display == "$15.00"

    def test_max_and_average_per_currency(self):
        report = aggregate([
            self.create_asset(price="10", asset_id=1),
            self.create_asset(price="20", asset_id=2),
            self.create_asset(price="€7", currency="EUR", asset_id=3),
        ])

        assert report.max_prices == {"USD": 20.0, "EUR": 7.0}
        assert report.average_prices["USD"] == pytest.approx(15.0)
        assert report.average_prices["EUR"] == pytest.approx(7.0)

    def test_full_precision_kept(self):
        """Only the display string is rounded."""
        report = aggregate([
            self.create_asset(price="0.333", asset_id=1),
            self.create_asset(price="0.333", asset_id=2),
            self.create_asset(price="0.333", asset_id=3),
        ])

        bucket = report.currency_totals[0]
        assert bucket.total == pytest.approx(0.999)
        assert bucket.display == "$1.00"

    def test_top_five_categories_with_other(self):
        """Seven categories fold into the top five plus Other."""
        values = [10, 9, 8, 7, 6, 5, 4]
        assets = [
            self.create_asset(price=str(value), type=f"type{index}", asset_id=index)
            for index, value in enumerate(values)
        ]

        rows = aggregate(assets).category_spend["USD"]

        assert len(rows) == 6
        assert [r.total for r in rows[:5]] == [10, 9, 8, 7, 6]
        assert [r.category for r in rows[:5]] == ["type0", "type1", "type2", "type3", "type4"]
        assert rows[5].category == OTHER_CATEGORY
        assert rows[5].total == pytest.approx(9.0)
        assert rows[5].count == 2

    def test_five_or_fewer_categories_not_folded(self):
        assets = [
            self.create_asset(price="1", type=f"type{index}", asset_id=index)
            for index in range(5)
        ]
        rows = aggregate(assets).category_spend["USD"]

        assert len(rows) == 5
        assert OTHER_CATEGORY not in [r.category for r in rows]

    def test_categories_grouped_per_currency(self):
        report = aggregate([
            self.create_asset(price="10", type="clothing", asset_id=1),
            self.create_asset(price="3", type="clothing", asset_id=2),
            self.create_asset(price="€4", currency="EUR", type="clothing", asset_id=3),
        ])

        usd = report.category_spend["USD"]
        eur = report.category_spend["EUR"]
        assert len(usd) == 1 and usd[0].total == pytest.approx(13.0) and usd[0].count == 2
        assert len(eur) == 1 and eur[0].total == pytest.approx(4.0)

    def test_top_categories_configurable(self):
        assets = [
            self.create_asset(price=str(10 - index), type=f"type{index}", asset_id=index)
            for index in range(4)
        ]
        rows = aggregate(assets, top_categories=2).category_spend["USD"]

        assert [r.category for r in rows] == ["type0", "type1", OTHER_CATEGORY]
        assert rows[2].total == pytest.approx(15.0)

    def test_trailing_twelve_months(self):
        """Fifteen months of spend keep only the most recent twelve."""
        assets = []
        for index in range(15):
            year, month = divmod(index, 12)
            assets.append(self.create_asset(
                price="5",
                date_added=datetime(2023 + year, month + 1, 10),
                asset_id=index,
            ))

        months = aggregate(list(reversed(assets))).monthly_spend["USD"]

        assert len(months) == 12
        assert months[0].key == "2023-04"
        assert months[-1].key == "2024-03"
        assert [m.key for m in months] == sorted(m.key for m in months)

    def test_window_counts_months_with_spend(self):
        """Gaps in the calendar do not shrink the window."""
        assets = [
            self.create_asset(price="1", date_added=datetime(2020, 1, 1), asset_id=1),
            self.create_asset(price="1", date_added=datetime(2024, 6, 1), asset_id=2),
        ]
        months = aggregate(assets).monthly_spend["USD"]

        assert [m.key for m in months] == ["2020-01", "2024-06"]

    def test_monthly_buckets_by_currency(self):
        report = aggregate([
            self.create_asset(price="2", date_added=datetime(2024, 5, 1), asset_id=1),
            self.create_asset(price="3", date_added=datetime(2024, 5, 28), asset_id=2),
            self.create_asset(price="€9", currency="EUR", date_added=datetime(2024, 5, 3), asset_id=3),
        ])

        usd = report.monthly_spend["USD"]
        assert len(usd) == 1
        assert usd[0].total == pytest.approx(5.0)
        assert usd[0].count == 2
        assert report.monthly_spend["EUR"][0].total == pytest.approx(9.0)

    def test_iso_string_dates_accepted(self):
        asset = self.create_asset(date_added="2024-02-29T10:00:00Z")
        months = aggregate([asset]).monthly_spend["USD"]
        assert months[0].key == "2024-02"

    def test_unparseable_date_excluded_from_months_only(self):
        report = aggregate([
            self.create_asset(price="8", date_added="not a date", asset_id=1),
            self.create_asset(price="2", date_added=None, asset_id=2),
        ])

        assert report.currency_totals[0].total == pytest.approx(10.0)
        assert report.category_spend["USD"][0].total == pytest.approx(10.0)
        assert report.monthly_spend == {}

    def test_assets_by_type_includes_free(self):
        report = aggregate([
            self.create_asset(price=None, type="prop", asset_id=1),
            self.create_asset(price="1", type="prop", asset_id=2),
            self.create_asset(price="1", type="shader", asset_id=3),
        ])
        assert report.assets_by_type == [("prop", 2), ("shader", 1)]

    def test_idempotent(self):
        """Aggregating the same snapshot twice yields identical reports."""
        assets = [
            self.create_asset(price="0.1", asset_id=1),
            self.create_asset(price="0.2", type="prop", asset_id=2),
            self.create_asset(price="¥300", currency="JPY", asset_id=3),
        ]
        assert aggregate(assets) == aggregate(assets)

    def test_oversized_price_does_not_break_report(self):
        """A 28-digit price is reported instead of failing the whole report."""
        report = aggregate([
            self.create_asset(price="1" + "0" * 27, asset_id=1),
            self.create_asset(price="$5.00", currency="EUR", asset_id=2),
        ])

        usd = next(b for b in report.currency_totals if b.currency == "USD")
        assert usd.display == "$1" + ",000" * 9 + ".00"
        assert report.currency_totals[-1].display == "€5.00"

    def test_overflowing_price_counted_as_free(self):
        """A price too large for a float parses to infinity and is treated as free."""
        report = aggregate([
            self.create_asset(price="9" * 400, asset_id=1),
            self.create_asset(price="$5.00", asset_id=2),
        ])

        assert report.free_count == 1
        assert report.currency_totals[0].total == pytest.approx(5.0)
        assert report.currency_totals[0].display == "$5.00"
