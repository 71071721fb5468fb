"""Tests for profitability metrics."""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

from tests.fakes import txn
from wip_analytics.services.profitability import ProfitabilityAccumulator, calculate_metrics


def test_metrics_formulas() -> None:
    metrics = calculate_metrics(
        production=Decimal("1000"),
        adjustments=Decimal("-100"),
        disbursements=Decimal("200"),
        cost=Decimal("450"),
        hours=Decimal("8"),
    )
    assert metrics.gross_production == Decimal("1200.00")
    assert metrics.net_revenue == Decimal("1100.00")
    assert metrics.gross_profit == Decimal("650.00")
    assert metrics.adjustment_percentage == Decimal("-8.33")
    assert metrics.gross_profit_percentage == Decimal("59.09")
    assert metrics.average_chargeout_rate == Decimal("150.00")
    assert metrics.average_recovery_rate == Decimal("137.50")


def test_zero_denominators_yield_zero() -> None:
    metrics = calculate_metrics(Decimal("0"), Decimal("0"), Decimal("0"), cost=Decimal("50"), hours=Decimal("0"))
    assert metrics.adjustment_percentage == Decimal("0")
    assert metrics.gross_profit_percentage == Decimal("0")
    assert metrics.average_chargeout_rate == Decimal("0")
    assert metrics.average_recovery_rate == Decimal("0")
    assert metrics.gross_profit == Decimal("-50.00")


def test_legacy_split_fields_are_zero() -> None:
    metrics = calculate_metrics(Decimal("10"), Decimal("1"), Decimal("1"))
    assert (metrics.ltd_adj_time, metrics.ltd_adj_disb, metrics.ltd_fee_time, metrics.ltd_fee_disb) == (0, 0, 0, 0)


def test_accumulator_cost_and_hours_rules() -> None:
    day = date(2024, 3, 1)
    accumulator = ProfitabilityAccumulator(cost_exempt_categories=frozenset({"CARL"}))
    accumulator.extend(
        [
            txn(day, "TIME", 500, cost=200, hours=5, task="T1"),
            txn(day, "TIME", 300, cost=120, hours=3, task="T2", employee_category="carl"),
            txn(day, "DISB", 50, cost=50, hours=1, task="T2"),
            txn(day, "PROV", -40, cost=40, task="T3"),
            txn(day, "ZZ", 999, cost=999, hours=9, task="T4"),
        ]
    )

    assert accumulator.production == Decimal("800")
    assert accumulator.provisions == Decimal("40")
    assert accumulator.cost == Decimal("250")
    assert accumulator.hours == Decimal("8")
    assert accumulator.task_count == 3
    assert accumulator.uncategorized == 1


def test_accumulator_tracks_last_updated() -> None:
    older = datetime(2024, 1, 1, tzinfo=timezone.utc)
    newer = datetime(2024, 2, 1, tzinfo=timezone.utc)
    base = txn(date(2024, 1, 1), "TIME", 10)
    accumulator = ProfitabilityAccumulator()
    accumulator.add(replace(base, updated_at=newer))
    accumulator.add(replace(base, updated_at=older))
    assert accumulator.last_updated == newer
