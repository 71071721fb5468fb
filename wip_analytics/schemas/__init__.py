from wip_analytics.schemas.analytics import (
    DailyMetric,
    MasterServiceLineInfo,
    PeriodSummary,
    ProfitabilityMetrics,
    RollupLine,
    ScopeGraphResponse,
    ServiceLineSeries,
    TaskGraphResponse,
    WipRollupResponse,
)
from wip_analytics.schemas.base import BaseResponse

__all__ = [
    "BaseResponse",
    "DailyMetric",
    "MasterServiceLineInfo",
    "PeriodSummary",
    "ProfitabilityMetrics",
    "RollupLine",
    "ScopeGraphResponse",
    "ServiceLineSeries",
    "TaskGraphResponse",
    "WipRollupResponse",
]
