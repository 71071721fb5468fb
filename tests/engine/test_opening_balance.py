"""Tests for opening balance reconstruction."""

import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

import pytest

from tests.fakes import txn
from wip_analytics.services.aggregation import PeriodAggregator, RowSource
from wip_analytics.services.ledger import TypeTotal
from wip_analytics.services.opening_balance import OpeningBalanceReconstructor

TYPES = ("TIME", "FEE", "ADJ", "DISB", "PROV", "XX")


def _history():
    start = date(2022, 1, 1)
    history = []
    for i in range(120):
        subtype = "WIP PROVISION" if i % 11 == 0 else None
        history.append(txn(start + timedelta(days=i * 3), TYPES[i % len(TYPES)], (i * 7) % 90 - 30, subtype=subtype))
    return history


def _grouped(transactions, before):
    sums = defaultdict(Decimal)
    for item in transactions:
        if item.transaction_date < before:
            sums[(item.type_code, item.subtype_code)] += item.amount
    return [TypeTotal(type_code=t, subtype_code=s, total=total) for (t, s), total in sums.items()]


@pytest.mark.parametrize("provision_sign", [-1, 1])
def test_grouped_opening_equals_full_replay(provision_sign) -> None:
    history = _history()
    window_start = date(2022, 9, 1)

    replay = PeriodAggregator(provision_sign=provision_sign).aggregate(
        RowSource([t for t in history if t.transaction_date < window_start])
    )
    reconstructed = OpeningBalanceReconstructor().reconstruct(
        "T1", window_start, _grouped(history, window_start), provision_sign
    )

    assert reconstructed == replay.summary.current_wip_balance


def test_accepts_plain_tuples() -> None:
    reconstructor = OpeningBalanceReconstructor()
    balance = reconstructor.reconstruct(
        "T1",
        date(2024, 1, 1),
        [("TIME", Decimal("100")), ("FEE", None, Decimal("-40")), ("ZZ", Decimal("500"))],
    )
    assert balance == Decimal("60")


def test_no_history_means_zero() -> None:
    assert OpeningBalanceReconstructor().reconstruct("T1", date(2024, 1, 1), []) == Decimal("0")


def test_reconstruct_by_key_splits_balances() -> None:
    totals = [
        TypeTotal("TIME", Decimal("100"), service_line_code="TAX"),
        TypeTotal("FEE", Decimal("-30"), service_line_code="TAX"),
        TypeTotal("TIME", Decimal("50"), service_line_code="AUD"),
    ]
    balances = OpeningBalanceReconstructor().reconstruct_by_key(
        "G1", date(2024, 1, 1), totals, key_for=lambda item: item.service_line_code
    )
    assert balances == {"TAX": Decimal("70"), "AUD": Decimal("50")}
    assert sum(balances.values()) == Decimal("120")


def test_uncategorized_groups_are_logged(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        balance = OpeningBalanceReconstructor().reconstruct(
            "T1", date(2024, 1, 1), [("TIME", Decimal("100")), ("ZZZ", Decimal("999"))]
        )

    assert balance == Decimal("100")
    assert "WIP_UNCATEGORIZED_TRANSACTIONS" in caplog.text
    assert "ZZZ" in caplog.text


def test_fully_categorized_history_logs_no_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        OpeningBalanceReconstructor().reconstruct("T1", date(2024, 1, 1), [("TIME", Decimal("100"))])

    assert "WIP_UNCATEGORIZED_TRANSACTIONS" not in caplog.text
