"""WIP analytics engine: chart series and profitability rollups per scope.

Every request follows the same path:

    cache lookup -> scope lookup -> concurrent opening/window fetch
    -> opening balance -> aggregation -> downsampling -> cache store

The repository, cache, service-line mapper and clock are injected so the
engine can run against fakes in tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import date

from wip_analytics.config import Settings, settings
from wip_analytics.constants.error_ids import ErrorIds
from wip_analytics.logger import async_log_timing, get_logger
from wip_analytics.schemas import (
    DailyMetric,
    MasterServiceLineInfo,
    PeriodSummary,
    RollupLine,
    ScopeGraphResponse,
    ServiceLineSeries,
    TaskGraphResponse,
    WipRollupResponse,
)
from wip_analytics.services.aggregation import AggregationResult, DailyBucket, PeriodAggregator, RowSource
from wip_analytics.services.cache import ResultCache, build_cache_key
from wip_analytics.services.categorization import TransactionCategorizer, default_categorizer
from wip_analytics.services.downsampling import Resolution, downsample
from wip_analytics.services.errors import ScopeNotFoundError, WipValidationError
from wip_analytics.services.ledger import BoundedFetch
from wip_analytics.services.ledger_repository import LedgerRepository, LedgerScope, ScopeKind
from wip_analytics.services.opening_balance import OpeningBalanceReconstructor
from wip_analytics.services.periods import ReportingWindow, WindowMode, resolve_window, trailing_window
from wip_analytics.services.rollup import RollupComposer
from wip_analytics.services.service_lines import UNKNOWN_SERVICE_LINE, ServiceLineMapper

logger = get_logger(__name__)


def parse_resolution(value: Resolution | str | None, default: str) -> Resolution:
    if isinstance(value, Resolution):
        return value
    raw = (value or default).strip().lower()
    try:
        return Resolution(raw)
    except ValueError as exc:
        raise WipValidationError(f"Unknown resolution: {value}") from exc


class WipAnalyticsEngine:
    def __init__(
        self,
        repository: LedgerRepository,
        cache: ResultCache,
        mapper: ServiceLineMapper,
        app_settings: Settings = settings,
        today: Callable[[], date] = date.today,
        categorizer: TransactionCategorizer | None = None,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.mapper = mapper
        self.settings = app_settings
        self._today = today
        self.categorizer = categorizer or default_categorizer
        self.reconstructor = OpeningBalanceReconstructor(self.categorizer)
        self.composer = RollupComposer(
            self.categorizer,
            cost_exempt_categories=app_settings.wip_cost_exempt_employee_categories,
        )

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _provision_sign(self, kind: ScopeKind) -> int:
        if kind is ScopeKind.TASK:
            return self.settings.wip_provision_sign_task
        if kind is ScopeKind.CLIENT:
            return self.settings.wip_provision_sign_client
        return self.settings.wip_provision_sign_group

    def _downsampled(self, buckets: Sequence[DailyBucket], resolution: Resolution) -> list[DailyMetric]:
        target = self.settings.wip_resolution_points[resolution.value]
        return [DailyMetric.model_validate(bucket) for bucket in downsample(buckets, target)]

    def _series(self, result: AggregationResult, resolution: Resolution) -> ServiceLineSeries:
        return ServiceLineSeries(
            daily_metrics=self._downsampled(result.daily, resolution),
            summary=PeriodSummary.model_validate(result.summary),
        )

    async def _cached(self, key: str, model):
        payload = await self.cache.get(key)
        if payload is None:
            return None
        logger.debug("Analytics cache hit", key=key)
        return model.model_validate(payload)

    async def _store(self, key: str, response, ttl_seconds: int) -> None:
        await self.cache.set(key, response.model_dump(mode="json", by_alias=True), ttl_seconds)

    async def _group_members(self, group_code: str) -> BoundedFetch:
        members = await self.repository.list_group_members(group_code, self.settings.wip_entity_cap)
        if members.limit_reached:
            logger.warning(
                "Group member cap reached, results are partial",
                error_id=ErrorIds.WIP_ENTITY_CAP_REACHED,
                group_code=group_code,
                limit=members.limit,
            )
        return members

    async def _master_lines(self, codes: Sequence[str]) -> list[MasterServiceLineInfo]:
        wanted = [code for code in codes if code != UNKNOWN_SERVICE_LINE]
        masters = await self.repository.master_service_lines(wanted)
        return [MasterServiceLineInfo(code=master.code, name=master.name) for master in masters]

    # ------------------------------------------------------------------
    # chart series
    # ------------------------------------------------------------------

    async def task_graphs(self, task_id: int, resolution: Resolution | str | None = None) -> TaskGraphResponse:
        res = parse_resolution(resolution, self.settings.wip_default_resolution)
        key = build_cache_key("task-graphs", task_id, resolution=res.value)
        cached = await self._cached(key, TaskGraphResponse)
        if cached is not None:
            return cached

        task = await self.repository.get_task(task_id)
        if task is None:
            raise ScopeNotFoundError("task", str(task_id))

        window = trailing_window(self._today(), self.settings.wip_task_window_months)
        scope = LedgerScope.for_task(task.entity_key)
        sign = self._provision_sign(ScopeKind.TASK)

        async with async_log_timing("task_graphs", logger=logger, task_id=task_id) as timing:
            opening_totals, fetch = await asyncio.gather(
                self.repository.opening_aggregates(scope, window.start),
                self.repository.window_transactions(scope, window, self.settings.wip_chart_row_cap),
            )
            opening = self.reconstructor.reconstruct(task.entity_key, window.start, opening_totals, sign)
            result = PeriodAggregator(self.categorizer, sign).aggregate(RowSource(fetch.items), opening)
            timing["transaction_count"] = fetch.count
            timing["days"] = len(result.daily)

        response = TaskGraphResponse(
            task_id=task.task_id,
            task_code=task.task_code,
            task_desc=task.task_desc,
            resolution=res.value,
            window_start=window.start,
            window_end=window.end,
            daily_metrics=self._downsampled(result.daily, res),
            summary=PeriodSummary.model_validate(result.summary),
            limit_reached=fetch.limit_reached,
            transaction_count=fetch.count,
        )
        await self._store(key, response, self.settings.wip_chart_cache_ttl_seconds)
        return response

    async def client_graphs(self, client_id: int, resolution: Resolution | str | None = None) -> ScopeGraphResponse:
        res = parse_resolution(resolution, self.settings.wip_default_resolution)
        key = build_cache_key("client-graphs", client_id, resolution=res.value)
        cached = await self._cached(key, ScopeGraphResponse)
        if cached is not None:
            return cached

        client = await self.repository.get_client(client_id)
        if client is None:
            raise ScopeNotFoundError("client", str(client_id))

        window = trailing_window(self._today(), self.settings.wip_client_window_months)
        response = await self._scope_graphs(
            ScopeKind.CLIENT,
            scope_id=str(client.client_id),
            name=client.client_name,
            client_keys=[client.client_key],
            members_limited=False,
            window=window,
            resolution=res,
        )
        await self._store(key, response, self.settings.wip_chart_cache_ttl_seconds)
        return response

    async def group_graphs(self, group_code: str, resolution: Resolution | str | None = None) -> ScopeGraphResponse:
        res = parse_resolution(resolution, self.settings.wip_default_resolution)
        key = build_cache_key("group-graphs", group_code, resolution=res.value)
        cached = await self._cached(key, ScopeGraphResponse)
        if cached is not None:
            return cached

        group = await self.repository.get_group(group_code)
        if group is None:
            raise ScopeNotFoundError("group", group_code)

        members = await self._group_members(group_code)
        window = trailing_window(self._today(), self.settings.wip_group_window_months)
        response = await self._scope_graphs(
            ScopeKind.GROUP,
            scope_id=group.group_code,
            name=group.group_desc,
            client_keys=members.items,
            members_limited=members.limit_reached,
            window=window,
            resolution=res,
        )
        await self._store(key, response, self.settings.wip_chart_cache_ttl_seconds)
        return response

    async def _scope_graphs(
        self,
        kind: ScopeKind,
        scope_id: str,
        name: str | None,
        client_keys: Sequence[str],
        members_limited: bool,
        window: ReportingWindow,
        resolution: Resolution,
    ) -> ScopeGraphResponse:
        scope = LedgerScope.for_clients(kind, client_keys)
        sign = self._provision_sign(kind)

        async with async_log_timing(f"{kind.value}_graphs", logger=logger, scope_id=scope_id) as timing:
            table, opening_totals, fetch = await asyncio.gather(
                self.mapper.table(),
                self.repository.opening_aggregates(scope, window.start, by_service_line=True),
                self.repository.daily_aggregates(
                    scope, window, by_service_line=True, limit=self.settings.wip_chart_row_cap
                ),
            )
            openings = self.composer.opening_by_master(scope_id, window.start, opening_totals, table, sign)
            series = self.composer.compose_series(fetch.items, table, openings, sign)
            timing["transaction_count"] = series.transaction_count
            timing["master_lines"] = len(series.by_master)

        if fetch.limit_reached:
            logger.warning(
                "Chart row cap reached, results are partial",
                error_id=ErrorIds.WIP_ROW_CAP_REACHED,
                scope=kind.value,
                scope_id=scope_id,
                limit=fetch.limit,
            )

        return ScopeGraphResponse(
            scope=kind.value,
            scope_id=scope_id,
            name=name,
            resolution=resolution.value,
            window_start=window.start,
            window_end=window.end,
            daily_metrics=self._downsampled(series.overall.daily, resolution),
            summary=PeriodSummary.model_validate(series.overall.summary),
            by_master_service_line={
                code: self._series(result, resolution) for code, result in series.by_master.items()
            },
            master_service_lines=await self._master_lines(list(series.by_master)),
            member_count=len(client_keys),
            limit_reached=members_limited or fetch.limit_reached,
            transaction_count=series.transaction_count,
        )

    # ------------------------------------------------------------------
    # profitability rollups
    # ------------------------------------------------------------------

    def _window(
        self,
        mode: WindowMode | str,
        fiscal_year: int | None,
        fiscal_month: str | None,
        start_date: date | None,
        end_date: date | None,
    ) -> ReportingWindow:
        try:
            window_mode = WindowMode(mode)
        except ValueError as exc:
            raise WipValidationError(f"Unknown window mode: {mode}") from exc
        try:
            return resolve_window(
                window_mode,
                self._today(),
                self.settings.wip_rollup_window_months,
                fiscal_year=fiscal_year,
                fiscal_month=fiscal_month,
                start_date=start_date,
                end_date=end_date,
            )
        except WipValidationError as exc:
            logger.info("Rejected reporting window", error_id=ErrorIds.WIP_INVALID_WINDOW, reason=str(exc))
            raise

    async def client_wip(
        self,
        client_id: int,
        mode: WindowMode | str = WindowMode.TRAILING,
        fiscal_year: int | None = None,
        fiscal_month: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> WipRollupResponse:
        window = self._window(mode, fiscal_year, fiscal_month, start_date, end_date)
        key = build_cache_key("client-wip", client_id, window=window.cache_token())
        cached = await self._cached(key, WipRollupResponse)
        if cached is not None:
            return cached

        client = await self.repository.get_client(client_id)
        if client is None:
            raise ScopeNotFoundError("client", str(client_id))

        response = await self._scope_wip(
            ScopeKind.CLIENT,
            scope_id=str(client.client_id),
            name=client.client_name,
            client_keys=[client.client_key],
            members_limited=False,
            window=window,
        )
        await self._store(key, response, self.settings.wip_rollup_cache_ttl_seconds)
        return response

    async def group_wip(
        self,
        group_code: str,
        mode: WindowMode | str = WindowMode.TRAILING,
        fiscal_year: int | None = None,
        fiscal_month: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> WipRollupResponse:
        window = self._window(mode, fiscal_year, fiscal_month, start_date, end_date)
        key = build_cache_key("group-wip", group_code, window=window.cache_token())
        cached = await self._cached(key, WipRollupResponse)
        if cached is not None:
            return cached

        group = await self.repository.get_group(group_code)
        if group is None:
            raise ScopeNotFoundError("group", group_code)

        members = await self._group_members(group_code)
        response = await self._scope_wip(
            ScopeKind.GROUP,
            scope_id=group.group_code,
            name=group.group_desc,
            client_keys=members.items,
            members_limited=members.limit_reached,
            window=window,
        )
        await self._store(key, response, self.settings.wip_rollup_cache_ttl_seconds)
        return response

    async def _scope_wip(
        self,
        kind: ScopeKind,
        scope_id: str,
        name: str | None,
        client_keys: Sequence[str],
        members_limited: bool,
        window: ReportingWindow,
    ) -> WipRollupResponse:
        scope = LedgerScope.for_clients(kind, client_keys)
        sign = self._provision_sign(kind)

        async with async_log_timing(f"{kind.value}_wip", logger=logger, scope_id=scope_id) as timing:
            table, opening_totals, fetch = await asyncio.gather(
                self.mapper.table(),
                self.repository.opening_aggregates(scope, window.start, by_service_line=True),
                self.repository.window_transactions(scope, window, self.settings.wip_row_cap),
            )
            openings = self.composer.opening_by_master(scope_id, window.start, opening_totals, table, sign)
            rollup = self.composer.compose(fetch.items, table, openings, sign)
            timing["transaction_count"] = rollup.transaction_count
            timing["task_count"] = rollup.overall.task_count

        return WipRollupResponse(
            scope=kind.value,
            scope_id=scope_id,
            name=name,
            window_start=window.start,
            window_end=window.end,
            overall=RollupLine.model_validate(rollup.overall),
            by_master_service_line={
                code: RollupLine.model_validate(line) for code, line in rollup.by_master.items()
            },
            master_service_lines=await self._master_lines(list(rollup.by_master)),
            member_count=len(client_keys),
            limit_reached=members_limited or fetch.limit_reached,
            transaction_count=rollup.transaction_count,
            uncategorized_count=rollup.uncategorized_count,
            last_updated=rollup.last_updated,
        )

    # ------------------------------------------------------------------
    # invalidation
    # ------------------------------------------------------------------

    async def invalidate_client(self, client_id: int) -> int:
        deleted = 0
        for prefix in ("client-graphs", "client-wip"):
            deleted += await self.cache.invalidate(build_cache_key(prefix, client_id) + ":")
        return deleted

    async def invalidate_group(self, group_code: str) -> int:
        deleted = 0
        for prefix in ("group-graphs", "group-wip"):
            deleted += await self.cache.invalidate(build_cache_key(prefix, group_code) + ":")
        return deleted
