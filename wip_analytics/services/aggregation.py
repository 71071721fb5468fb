"""Period aggregation: daily category buckets and running WIP balance."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Protocol

from wip_analytics.constants.error_ids import ErrorIds
from wip_analytics.logger import get_logger
from wip_analytics.services.categorization import (
    Category,
    TransactionCategorizer,
    bucket_amount,
    default_categorizer,
)
from wip_analytics.services.ledger import DailyTypeTotal, LedgerTransaction

logger = get_logger(__name__)

ZERO = Decimal("0")
CANONICAL_PROVISION_SIGN = -1


def wip_delta(
    production: Decimal,
    adjustments: Decimal,
    disbursements: Decimal,
    billing: Decimal,
    provisions: Decimal,
    provision_sign: int = CANONICAL_PROVISION_SIGN,
) -> Decimal:
    """Change in WIP balance for one set of category totals."""
    return production + adjustments + disbursements - billing + provision_sign * provisions


class LedgerEntry(NamedTuple):
    transaction_date: date
    type_code: str
    subtype_code: str | None
    amount: Decimal


class AggregationSource(Protocol):
    """Anything that can feed dated ledger amounts into the aggregator."""

    def entries(self) -> Iterable[LedgerEntry]: ...


class RowSource:
    """Individual ledger transactions, grouped by exact date inside the aggregator."""

    def __init__(self, transactions: Sequence[LedgerTransaction]) -> None:
        self.transactions = transactions

    def entries(self) -> Iterable[LedgerEntry]:
        for txn in self.transactions:
            yield LedgerEntry(txn.transaction_date, txn.type_code, txn.subtype_code, txn.amount)

    def __len__(self) -> int:
        return len(self.transactions)


class GroupedSource:
    """(date, type) sums already grouped by the data layer."""

    def __init__(self, rows: Sequence[DailyTypeTotal]) -> None:
        self.rows = rows

    def entries(self) -> Iterable[LedgerEntry]:
        for row in self.rows:
            yield LedgerEntry(row.transaction_date, row.type_code, row.subtype_code, row.total)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass
class CategoryTotals:
    """Mutable accumulator for the five WIP buckets."""

    production: Decimal = ZERO
    adjustments: Decimal = ZERO
    disbursements: Decimal = ZERO
    billing: Decimal = ZERO
    provisions: Decimal = ZERO

    def add(self, category: Category, amount: Decimal) -> bool:
        """Add a ledger amount to its bucket. Returns False for Uncategorized."""
        value = bucket_amount(category, amount)
        if category is Category.PRODUCTION:
            self.production += value
        elif category is Category.ADJUSTMENT:
            self.adjustments += value
        elif category is Category.DISBURSEMENT:
            self.disbursements += value
        elif category is Category.BILLING:
            self.billing += value
        elif category is Category.PROVISION:
            self.provisions += value
        else:
            return False
        return True

    def merge(self, other: CategoryTotals) -> None:
        self.production += other.production
        self.adjustments += other.adjustments
        self.disbursements += other.disbursements
        self.billing += other.billing
        self.provisions += other.provisions

    def delta(self, provision_sign: int = CANONICAL_PROVISION_SIGN) -> Decimal:
        return wip_delta(
            self.production,
            self.adjustments,
            self.disbursements,
            self.billing,
            self.provisions,
            provision_sign,
        )


@dataclass(frozen=True)
class DailyBucket:
    date: date
    production: Decimal
    adjustments: Decimal
    disbursements: Decimal
    billing: Decimal
    provisions: Decimal
    wip_balance: Decimal

    @property
    def has_activity(self) -> bool:
        return any(
            value != ZERO
            for value in (
                self.production,
                self.adjustments,
                self.disbursements,
                self.billing,
                self.provisions,
            )
        )


@dataclass(frozen=True)
class PeriodSummary:
    total_production: Decimal
    total_adjustments: Decimal
    total_disbursements: Decimal
    total_billing: Decimal
    total_provisions: Decimal
    current_wip_balance: Decimal
    opening_balance: Decimal = ZERO


@dataclass(frozen=True)
class AggregationResult:
    daily: list[DailyBucket]
    summary: PeriodSummary
    category_counts: dict[Category, int] = field(default_factory=dict)

    @property
    def entry_count(self) -> int:
        return sum(self.category_counts.values())

    @property
    def uncategorized_count(self) -> int:
        return self.category_counts.get(Category.UNCATEGORIZED, 0)


class PeriodAggregator:
    """Buckets ledger entries by day and rolls a running WIP balance forward.

    The same loop serves row-level and pre-grouped sources. Uncategorized
    entries never reach a bucket but are counted and logged.
    """

    def __init__(
        self,
        categorizer: TransactionCategorizer | None = None,
        provision_sign: int = CANONICAL_PROVISION_SIGN,
    ) -> None:
        if provision_sign not in (1, -1):
            raise ValueError("provision_sign must be +1 or -1")
        self.categorizer = categorizer or default_categorizer
        self.provision_sign = provision_sign

    def aggregate(self, source: AggregationSource, opening_balance: Decimal = ZERO) -> AggregationResult:
        by_date: dict[date, CategoryTotals] = {}
        counts: Counter[Category] = Counter()
        uncategorized_codes: Counter[str] = Counter()

        for entry in source.entries():
            category = self.categorizer.categorize(entry.type_code, entry.subtype_code)
            counts[category] += 1
            if category is Category.UNCATEGORIZED:
                uncategorized_codes[f"{entry.type_code}/{entry.subtype_code or '-'}"] += 1
                continue
            totals = by_date.setdefault(entry.transaction_date, CategoryTotals())
            totals.add(category, entry.amount)

        if uncategorized_codes:
            logger.warning(
                "Uncategorized ledger entries excluded from WIP buckets",
                error_id=ErrorIds.WIP_UNCATEGORIZED_TRANSACTIONS,
                count=sum(uncategorized_codes.values()),
                codes=dict(uncategorized_codes.most_common(10)),
            )

        cumulative = opening_balance
        period = CategoryTotals()
        daily: list[DailyBucket] = []
        for day in sorted(by_date):
            totals = by_date[day]
            cumulative += totals.delta(self.provision_sign)
            period.merge(totals)
            daily.append(
                DailyBucket(
                    date=day,
                    production=totals.production,
                    adjustments=totals.adjustments,
                    disbursements=totals.disbursements,
                    billing=totals.billing,
                    provisions=totals.provisions,
                    wip_balance=cumulative,
                )
            )

        summary = PeriodSummary(
            total_production=period.production,
            total_adjustments=period.adjustments,
            total_disbursements=period.disbursements,
            total_billing=period.billing,
            total_provisions=period.provisions,
            current_wip_balance=daily[-1].wip_balance if daily else opening_balance,
            opening_balance=opening_balance,
        )
        return AggregationResult(daily=daily, summary=summary, category_counts=dict(counts))
