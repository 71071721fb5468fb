"""Profitability metrics over life-to-date WIP totals."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from wip_analytics.services.aggregation import ZERO
from wip_analytics.services.categorization import (
    Category,
    TransactionCategorizer,
    bucket_amount,
    default_categorizer,
    normalize_code,
)
from wip_analytics.services.ledger import LedgerTransaction

HUNDRED = Decimal("100")


def _quantize_money(amount: Decimal | int) -> Decimal:
    if isinstance(amount, int):
        amount = Decimal(amount)
    return amount.quantize(Decimal("0.01"))


def _safe_ratio(numerator: Decimal, denominator: Decimal, scale: Decimal = Decimal("1")) -> Decimal:
    if denominator == ZERO:
        return ZERO
    return _quantize_money(numerator / denominator * scale)


@dataclass(frozen=True)
class ProfitabilityMetrics:
    gross_production: Decimal
    net_revenue: Decimal
    adjustment_percentage: Decimal
    gross_profit: Decimal
    gross_profit_percentage: Decimal
    average_chargeout_rate: Decimal
    average_recovery_rate: Decimal
    total_cost: Decimal
    total_hours: Decimal
    # Legacy split view; adjustments and fees are no longer split by time/disbursement
    ltd_adj_time: Decimal = ZERO
    ltd_adj_disb: Decimal = ZERO
    ltd_fee_time: Decimal = ZERO
    ltd_fee_disb: Decimal = ZERO


def calculate_metrics(
    production: Decimal,
    adjustments: Decimal,
    disbursements: Decimal,
    cost: Decimal = ZERO,
    hours: Decimal = ZERO,
) -> ProfitabilityMetrics:
    """Derive profitability ratios; any ratio with a zero denominator is 0."""
    gross_production = production + disbursements
    net_revenue = gross_production + adjustments
    gross_profit = net_revenue - cost

    return ProfitabilityMetrics(
        gross_production=_quantize_money(gross_production),
        net_revenue=_quantize_money(net_revenue),
        adjustment_percentage=_safe_ratio(adjustments, gross_production, HUNDRED),
        gross_profit=_quantize_money(gross_profit),
        gross_profit_percentage=_safe_ratio(gross_profit, net_revenue, HUNDRED),
        average_chargeout_rate=_safe_ratio(gross_production, hours),
        average_recovery_rate=_safe_ratio(net_revenue, hours),
        total_cost=_quantize_money(cost),
        total_hours=_quantize_money(hours),
    )


@dataclass
class ProfitabilityAccumulator:
    """Running cost, hours and category totals for one rollup line.

    Cost skips provision rows and rows owned by cost-exempt employee
    categories. Hours count only production rows.
    """

    cost_exempt_categories: frozenset[str] = frozenset({"CARL"})
    categorizer: TransactionCategorizer = field(default_factory=lambda: default_categorizer)
    production: Decimal = ZERO
    adjustments: Decimal = ZERO
    disbursements: Decimal = ZERO
    billing: Decimal = ZERO
    provisions: Decimal = ZERO
    cost: Decimal = ZERO
    hours: Decimal = ZERO
    entity_keys: set[str] = field(default_factory=set)
    last_updated: datetime | None = None
    uncategorized: int = 0

    def is_cost_exempt(self, txn: LedgerTransaction) -> bool:
        return normalize_code(txn.employee_category) in self.cost_exempt_categories

    def add(self, txn: LedgerTransaction) -> Category:
        category = self.categorizer.categorize(txn.type_code, txn.subtype_code)
        if category is Category.UNCATEGORIZED:
            self.uncategorized += 1
            return category

        value = bucket_amount(category, txn.amount)
        if category is Category.PRODUCTION:
            self.production += value
            self.hours += txn.hours_amount or ZERO
        elif category is Category.ADJUSTMENT:
            self.adjustments += value
        elif category is Category.DISBURSEMENT:
            self.disbursements += value
        elif category is Category.BILLING:
            self.billing += value
        else:
            self.provisions += value

        if category is not Category.PROVISION and not self.is_cost_exempt(txn):
            self.cost += txn.cost_amount or ZERO

        self.entity_keys.add(txn.entity_key)
        if txn.updated_at is not None and (self.last_updated is None or txn.updated_at > self.last_updated):
            self.last_updated = txn.updated_at
        return category

    def extend(self, transactions: Iterable[LedgerTransaction]) -> None:
        for txn in transactions:
            self.add(txn)

    @property
    def task_count(self) -> int:
        return len(self.entity_keys)

    @property
    def time_balance(self) -> Decimal:
        """Unbilled time: production plus adjustments less billing."""
        return _quantize_money(self.production + self.adjustments - self.billing)

    @property
    def disbursement_balance(self) -> Decimal:
        return _quantize_money(self.disbursements)

    def metrics(self) -> ProfitabilityMetrics:
        return calculate_metrics(
            self.production,
            self.adjustments,
            self.disbursements,
            cost=self.cost,
            hours=self.hours,
        )
