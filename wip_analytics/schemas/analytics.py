"""Pydantic schemas for WIP analytics endpoints."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from wip_analytics.schemas.base import BaseResponse


class DailyMetric(BaseResponse):
    """One chart point: category totals for a day and the balance at its end."""

    metric_date: date = Field(alias="date")
    production: Decimal
    adjustments: Decimal
    disbursements: Decimal
    billing: Decimal
    provisions: Decimal
    wip_balance: Decimal


class PeriodSummary(BaseResponse):
    total_production: Decimal
    total_adjustments: Decimal
    total_disbursements: Decimal
    total_billing: Decimal
    total_provisions: Decimal
    current_wip_balance: Decimal
    opening_balance: Decimal = Decimal("0")


class ProfitabilityMetrics(BaseResponse):
    gross_production: Decimal
    net_revenue: Decimal
    adjustment_percentage: Decimal
    gross_profit: Decimal
    gross_profit_percentage: Decimal
    average_chargeout_rate: Decimal
    average_recovery_rate: Decimal
    total_cost: Decimal
    total_hours: Decimal
    ltd_adj_time: Decimal = Decimal("0")
    ltd_adj_disb: Decimal = Decimal("0")
    ltd_fee_time: Decimal = Decimal("0")
    ltd_fee_disb: Decimal = Decimal("0")


class MasterServiceLineInfo(BaseResponse):
    code: str
    name: str


class ServiceLineSeries(BaseResponse):
    """Downsampled series for one master service line."""

    daily_metrics: list[DailyMetric]
    summary: PeriodSummary


class TaskGraphResponse(BaseResponse):
    task_id: int
    task_code: str
    task_desc: str | None = None
    resolution: str
    window_start: date
    window_end: date
    daily_metrics: list[DailyMetric]
    summary: PeriodSummary
    limit_reached: bool = False
    transaction_count: int = 0


class ScopeGraphResponse(BaseResponse):
    """Chart payload for a client or client group."""

    scope: str
    scope_id: str
    name: str | None = None
    resolution: str
    window_start: date
    window_end: date
    daily_metrics: list[DailyMetric]
    summary: PeriodSummary
    by_master_service_line: dict[str, ServiceLineSeries] = Field(default_factory=dict)
    master_service_lines: list[MasterServiceLineInfo] = Field(default_factory=list)
    member_count: int = 1
    limit_reached: bool = False
    transaction_count: int = 0


class RollupLine(BaseResponse):
    summary: PeriodSummary
    metrics: ProfitabilityMetrics
    task_count: int
    transaction_count: int
    bal_time: Decimal = Decimal("0")
    bal_disb: Decimal = Decimal("0")


class WipRollupResponse(BaseResponse):
    """Profitability rollup for a client or client group."""

    scope: str
    scope_id: str
    name: str | None = None
    window_start: date
    window_end: date
    overall: RollupLine
    by_master_service_line: dict[str, RollupLine] = Field(default_factory=dict)
    master_service_lines: list[MasterServiceLineInfo] = Field(default_factory=list)
    member_count: int = 1
    limit_reached: bool = False
    transaction_count: int = 0
    uncategorized_count: int = 0
    last_updated: datetime | None = None
