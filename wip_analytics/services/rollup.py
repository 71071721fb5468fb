"""Merges ledger activity of many entities into per-master-service-line totals."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from wip_analytics.logger import get_logger
from wip_analytics.services.aggregation import (
    CANONICAL_PROVISION_SIGN,
    ZERO,
    AggregationResult,
    GroupedSource,
    PeriodAggregator,
    PeriodSummary,
    RowSource,
)
from wip_analytics.services.categorization import TransactionCategorizer, default_categorizer
from wip_analytics.services.ledger import DailyTypeTotal, LedgerTransaction, TypeTotal
from wip_analytics.services.opening_balance import OpeningBalanceReconstructor
from wip_analytics.services.profitability import ProfitabilityAccumulator, ProfitabilityMetrics
from wip_analytics.services.service_lines import UNKNOWN_SERVICE_LINE, ServiceLineTable

logger = get_logger(__name__)


@dataclass(frozen=True)
class RollupLine:
    """Totals for one master service line, or for the whole scope."""

    code: str
    summary: PeriodSummary
    metrics: ProfitabilityMetrics
    task_count: int
    transaction_count: int
    bal_time: Decimal = ZERO
    bal_disb: Decimal = ZERO


@dataclass(frozen=True)
class RollupResult:
    overall: RollupLine
    by_master: dict[str, RollupLine]
    transaction_count: int
    uncategorized_count: int
    last_updated: datetime | None = None


@dataclass(frozen=True)
class SeriesResult:
    """Daily aggregation for the whole scope plus one per master service line."""

    overall: AggregationResult
    by_master: dict[str, AggregationResult] = field(default_factory=dict)
    transaction_count: int = 0


def _sort_codes(codes: Iterable[str]) -> list[str]:
    # UNKNOWN always sorts last
    return sorted(set(codes), key=lambda code: (code == UNKNOWN_SERVICE_LINE, code))


class RollupComposer:
    """Groups member ledger activity by master service line.

    Opening balances are reconstructed per master line from aggregates
    grouped by service line, so every series starts from its own balance.
    """

    def __init__(
        self,
        categorizer: TransactionCategorizer | None = None,
        cost_exempt_categories: Iterable[str] = ("CARL",),
    ) -> None:
        self.categorizer = categorizer or default_categorizer
        self.cost_exempt_categories = frozenset(code.upper() for code in cost_exempt_categories)
        self.reconstructor = OpeningBalanceReconstructor(self.categorizer)

    def opening_by_master(
        self,
        entity_key: str,
        window_start: date,
        totals: Sequence[TypeTotal],
        table: ServiceLineTable,
        provision_sign: int = CANONICAL_PROVISION_SIGN,
    ) -> dict[str, Decimal]:
        return self.reconstructor.reconstruct_by_key(
            entity_key,
            window_start,
            totals,
            key_for=lambda item: table.master_for(item.service_line_code),
            provision_sign=provision_sign,
        )

    def compose_series(
        self,
        rows: Sequence[DailyTypeTotal],
        table: ServiceLineTable,
        openings: dict[str, Decimal],
        provision_sign: int = CANONICAL_PROVISION_SIGN,
    ) -> SeriesResult:
        aggregator = PeriodAggregator(self.categorizer, provision_sign)

        grouped: dict[str, list[DailyTypeTotal]] = {}
        for row in rows:
            grouped.setdefault(table.master_for(row.service_line_code), []).append(row)

        by_master = {
            code: aggregator.aggregate(GroupedSource(grouped.get(code, [])), openings.get(code, ZERO))
            for code in _sort_codes([*grouped, *(code for code, value in openings.items() if value != ZERO)])
        }
        overall = aggregator.aggregate(GroupedSource(rows), sum(openings.values(), ZERO))
        return SeriesResult(
            overall=overall,
            by_master=by_master,
            transaction_count=sum(row.row_count for row in rows),
        )

    def compose(
        self,
        transactions: Sequence[LedgerTransaction],
        table: ServiceLineTable,
        openings: dict[str, Decimal],
        provision_sign: int = CANONICAL_PROVISION_SIGN,
    ) -> RollupResult:
        aggregator = PeriodAggregator(self.categorizer, provision_sign)

        grouped: dict[str, list[LedgerTransaction]] = {}
        for txn in transactions:
            grouped.setdefault(table.master_for(txn.service_line_code), []).append(txn)

        by_master: dict[str, RollupLine] = {}
        for code in _sort_codes([*grouped, *(code for code, value in openings.items() if value != ZERO)]):
            by_master[code], _ = self._line(aggregator, code, grouped.get(code, []), openings.get(code, ZERO))

        overall, accumulator = self._line(aggregator, "OVERALL", transactions, sum(openings.values(), ZERO))

        logger.debug(
            "Rollup composed",
            master_lines=len(by_master),
            transaction_count=len(transactions),
            task_count=overall.task_count,
        )
        return RollupResult(
            overall=overall,
            by_master=by_master,
            transaction_count=len(transactions),
            uncategorized_count=accumulator.uncategorized,
            last_updated=accumulator.last_updated,
        )

    def _line(
        self,
        aggregator: PeriodAggregator,
        code: str,
        transactions: Sequence[LedgerTransaction],
        opening_balance: Decimal,
    ) -> tuple[RollupLine, ProfitabilityAccumulator]:
        result = aggregator.aggregate(RowSource(transactions), opening_balance)
        accumulator = ProfitabilityAccumulator(self.cost_exempt_categories, self.categorizer)
        accumulator.extend(transactions)
        line = RollupLine(
            code=code,
            summary=result.summary,
            metrics=accumulator.metrics(),
            task_count=accumulator.task_count,
            transaction_count=len(transactions),
            bal_time=accumulator.time_balance,
            bal_disb=accumulator.disbursement_balance,
        )
        return line, accumulator
