"""Services package."""

from wip_analytics.services.aggregation import (
    AggregationResult,
    DailyBucket,
    GroupedSource,
    PeriodAggregator,
    PeriodSummary,
    RowSource,
    wip_delta,
)
from wip_analytics.services.cache import (
    MemoryCacheBackend,
    RedisCacheBackend,
    ResultCache,
    build_cache_key,
    create_result_cache,
)
from wip_analytics.services.categorization import Category, TransactionCategorizer, categorize
from wip_analytics.services.downsampling import Resolution, downsample, smart_downsample, stride_downsample
from wip_analytics.services.errors import (
    CacheUnavailableError,
    MappingLoadError,
    ScopeNotFoundError,
    WipAnalyticsError,
    WipValidationError,
)
from wip_analytics.services.ledger_repository import LedgerRepository, LedgerScope, ScopeKind, SqlLedgerRepository
from wip_analytics.services.opening_balance import OpeningBalanceReconstructor
from wip_analytics.services.periods import ReportingWindow, WindowMode, fiscal_window, trailing_window
from wip_analytics.services.profitability import ProfitabilityAccumulator, ProfitabilityMetrics, calculate_metrics
from wip_analytics.services.rollup import RollupComposer
from wip_analytics.services.service_lines import UNKNOWN_SERVICE_LINE, ServiceLineMapper
from wip_analytics.services.wip_engine import WipAnalyticsEngine
