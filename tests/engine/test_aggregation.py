"""Tests for the period aggregator."""

import logging
from datetime import date, timedelta
from decimal import Decimal

import pytest

from tests.fakes import txn
from wip_analytics.services.aggregation import (
    GroupedSource,
    PeriodAggregator,
    RowSource,
    wip_delta,
)
from wip_analytics.services.categorization import Category
from wip_analytics.services.ledger import DailyTypeTotal


def _ledger():
    return [
        txn(date(2024, 1, 1), "TIME", 100),
        txn(date(2024, 1, 1), "FEE", -40),
        txn(date(2024, 1, 2), "PROV", -10),
    ]


def test_wip_delta_formula() -> None:
    assert wip_delta(Decimal(100), Decimal(5), Decimal(20), Decimal(40), Decimal(10)) == Decimal(75)
    assert wip_delta(Decimal(0), Decimal(0), Decimal(0), Decimal(0), Decimal(10), provision_sign=1) == Decimal(10)


def test_daily_buckets_and_running_balance() -> None:
    result = PeriodAggregator().aggregate(RowSource(_ledger()))

    assert [bucket.date for bucket in result.daily] == [date(2024, 1, 1), date(2024, 1, 2)]
    first, second = result.daily
    assert first.production == Decimal("100")
    assert first.billing == Decimal("40")
    assert first.wip_balance == Decimal("60")
    assert second.provisions == Decimal("10")
    assert second.wip_balance == Decimal("50")
    assert result.summary.current_wip_balance == Decimal("50")
    assert result.summary.total_billing == Decimal("40")
    assert result.summary.total_provisions == Decimal("10")


def test_opening_balance_seeds_running_balance() -> None:
    result = PeriodAggregator().aggregate(RowSource(_ledger()), Decimal("25"))
    assert result.daily[0].wip_balance == Decimal("85")
    assert result.summary.current_wip_balance == Decimal("75")
    assert result.summary.opening_balance == Decimal("25")


def test_empty_source_returns_opening_balance() -> None:
    result = PeriodAggregator().aggregate(RowSource([]), Decimal("12.50"))
    assert result.daily == []
    assert result.summary.current_wip_balance == Decimal("12.50")
    assert result.entry_count == 0


def test_grouped_and_row_sources_agree() -> None:
    rows = _ledger()
    grouped = [
        DailyTypeTotal(date(2024, 1, 1), "TIME", Decimal("100")),
        DailyTypeTotal(date(2024, 1, 1), "FEE", Decimal("-40")),
        DailyTypeTotal(date(2024, 1, 2), "PROV", Decimal("-10")),
    ]
    aggregator = PeriodAggregator()
    assert aggregator.aggregate(RowSource(rows)).daily == aggregator.aggregate(GroupedSource(grouped)).daily


def test_aggregation_is_idempotent() -> None:
    aggregator = PeriodAggregator()
    source = RowSource(_ledger())
    assert aggregator.aggregate(source) == aggregator.aggregate(source)


def test_balance_continuity_across_adjacent_windows() -> None:
    start = date(2024, 1, 1)
    ledger = [txn(start + timedelta(days=i), ("TIME", "FEE", "ADJ", "DISB", "PROV")[i % 5], i * 3 - 20) for i in range(40)]
    split = start + timedelta(days=17)
    aggregator = PeriodAggregator()

    whole = aggregator.aggregate(RowSource(ledger))
    first = aggregator.aggregate(RowSource([t for t in ledger if t.transaction_date < split]))
    second = aggregator.aggregate(
        RowSource([t for t in ledger if t.transaction_date >= split]),
        first.summary.current_wip_balance,
    )

    assert second.summary.current_wip_balance == whole.summary.current_wip_balance
    assert [b.wip_balance for b in first.daily + second.daily] == [b.wip_balance for b in whole.daily]


def test_uncategorized_rows_are_counted_and_logged(caplog) -> None:
    ledger = _ledger() + [txn(date(2024, 1, 3), "ZZ", 999)]

    with caplog.at_level(logging.WARNING):
        result = PeriodAggregator().aggregate(RowSource(ledger))

    assert result.uncategorized_count == 1
    assert result.category_counts[Category.PRODUCTION] == 1
    assert result.entry_count == 4
    assert result.summary.current_wip_balance == Decimal("50")
    assert date(2024, 1, 3) not in [bucket.date for bucket in result.daily]
    assert "WIP_UNCATEGORIZED_TRANSACTIONS" in caplog.text


def test_positive_provision_sign_adds_provisions() -> None:
    result = PeriodAggregator(provision_sign=1).aggregate(RowSource(_ledger()))
    assert result.summary.current_wip_balance == Decimal("70")


def test_invalid_provision_sign_rejected() -> None:
    with pytest.raises(ValueError):
        PeriodAggregator(provision_sign=0)
