"""WIP analytics API router."""

from __future__ import annotations

from datetime import date
from typing import NoReturn

from fastapi import APIRouter, Query

from wip_analytics.constants.error_ids import ErrorIds
from wip_analytics.deps import AnalyticsEngine
from wip_analytics.logger import get_logger
from wip_analytics.schemas import ScopeGraphResponse, TaskGraphResponse, WipRollupResponse
from wip_analytics.services.downsampling import Resolution
from wip_analytics.services.errors import ScopeNotFoundError, WipValidationError
from wip_analytics.services.periods import WindowMode
from wip_analytics.utils import raise_bad_request, raise_not_found

router = APIRouter(prefix="/analytics", tags=["analytics"])
logger = get_logger(__name__)


def _raise_for(exc: ScopeNotFoundError | WipValidationError, **context) -> NoReturn:
    if isinstance(exc, ScopeNotFoundError):
        logger.info(
            "Analytics scope not found",
            error_id=ErrorIds.WIP_SCOPE_NOT_FOUND,
            scope=exc.scope,
            identifier=exc.identifier,
        )
        raise_not_found(f"{exc.scope.capitalize()} {exc.identifier}", cause=exc)
    logger.warning("Analytics request rejected", error=str(exc), **context)
    raise_bad_request(str(exc), cause=exc)


@router.get(
    "/tasks/{task_id}/graphs",
    response_model=TaskGraphResponse,
    response_model_by_alias=True,
)
async def task_graphs(
    task_id: int,
    engine: AnalyticsEngine,
    resolution: Resolution | None = Query(default=None),
) -> TaskGraphResponse:
    """Daily WIP series for a single task."""
    try:
        return await engine.task_graphs(task_id, resolution)
    except (ScopeNotFoundError, WipValidationError) as exc:
        _raise_for(exc, task_id=task_id)


@router.get(
    "/clients/{client_id}/graphs",
    response_model=ScopeGraphResponse,
    response_model_by_alias=True,
)
async def client_graphs(
    client_id: int,
    engine: AnalyticsEngine,
    resolution: Resolution | None = Query(default=None),
) -> ScopeGraphResponse:
    """Daily WIP series for a client, overall and per master service line."""
    try:
        return await engine.client_graphs(client_id, resolution)
    except (ScopeNotFoundError, WipValidationError) as exc:
        _raise_for(exc, client_id=client_id)


@router.get(
    "/groups/{group_code}/graphs",
    response_model=ScopeGraphResponse,
    response_model_by_alias=True,
)
async def group_graphs(
    group_code: str,
    engine: AnalyticsEngine,
    resolution: Resolution | None = Query(default=None),
) -> ScopeGraphResponse:
    """Daily WIP series for a client group, overall and per master service line."""
    try:
        return await engine.group_graphs(group_code, resolution)
    except (ScopeNotFoundError, WipValidationError) as exc:
        _raise_for(exc, group_code=group_code)


@router.get(
    "/clients/{client_id}/wip",
    response_model=WipRollupResponse,
    response_model_by_alias=True,
)
async def client_wip(
    client_id: int,
    engine: AnalyticsEngine,
    mode: WindowMode = Query(default=WindowMode.TRAILING),
    fiscal_year: int | None = Query(default=None),
    fiscal_month: str | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> WipRollupResponse:
    """Profitability rollup for a client."""
    try:
        return await engine.client_wip(
            client_id,
            mode=mode,
            fiscal_year=fiscal_year,
            fiscal_month=fiscal_month,
            start_date=start_date,
            end_date=end_date,
        )
    except (ScopeNotFoundError, WipValidationError) as exc:
        _raise_for(exc, client_id=client_id, mode=mode.value)


@router.get(
    "/groups/{group_code}/wip",
    response_model=WipRollupResponse,
    response_model_by_alias=True,
)
async def group_wip(
    group_code: str,
    engine: AnalyticsEngine,
    mode: WindowMode = Query(default=WindowMode.TRAILING),
    fiscal_year: int | None = Query(default=None),
    fiscal_month: str | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> WipRollupResponse:
    """Profitability rollup for a client group."""
    try:
        return await engine.group_wip(
            group_code,
            mode=mode,
            fiscal_year=fiscal_year,
            fiscal_month=fiscal_month,
            start_date=start_date,
            end_date=end_date,
        )
    except (ScopeNotFoundError, WipValidationError) as exc:
        _raise_for(exc, group_code=group_code, mode=mode.value)
