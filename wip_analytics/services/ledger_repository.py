"""Read-only access to the upstream ledger tables.

Statements are built by module-level helpers so their shape can be checked
without a database. Every repository call opens its own session, which lets
the engine run the opening-balance and in-window queries concurrently.
"""

from __future__ import annotations

import enum
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wip_analytics.constants.error_ids import ErrorIds
from wip_analytics.logger import get_logger
from wip_analytics.models import (
    Client,
    Employee,
    ServiceLineExternal,
    ServiceLineMaster,
    Task,
    WipTransaction,
)
from wip_analytics.services.errors import MappingLoadError
from wip_analytics.services.ledger import (
    BoundedFetch,
    ClientInfo,
    DailyTypeTotal,
    GroupInfo,
    LedgerTransaction,
    MasterServiceLine,
    TaskInfo,
    TypeTotal,
)
from wip_analytics.services.periods import ReportingWindow

logger = get_logger(__name__)

ZERO = Decimal("0")


class ScopeKind(str, enum.Enum):
    TASK = "task"
    CLIENT = "client"
    GROUP = "group"


@dataclass(frozen=True)
class LedgerScope:
    """Which ledger rows belong to a request.

    Task scopes filter on the task key; client and group scopes filter on
    the (already capped) set of client keys.
    """

    kind: ScopeKind
    keys: tuple[str, ...]

    @classmethod
    def for_task(cls, entity_key: str) -> LedgerScope:
        return cls(ScopeKind.TASK, (entity_key,))

    @classmethod
    def for_clients(cls, kind: ScopeKind, client_keys: Iterable[str]) -> LedgerScope:
        return cls(kind, tuple(client_keys))


def _scope_condition(scope: LedgerScope):
    column = WipTransaction.gs_task_id if scope.kind is ScopeKind.TASK else WipTransaction.gs_client_id
    if len(scope.keys) == 1:
        return column == scope.keys[0]
    return column.in_(scope.keys)


def opening_aggregates_stmt(scope: LedgerScope, before: date, by_service_line: bool = False) -> Select:
    columns = [WipTransaction.t_type, WipTransaction.tran_type]
    if by_service_line:
        columns.append(WipTransaction.task_serv_line)
    return (
        select(*columns, func.coalesce(func.sum(WipTransaction.amount), 0).label("total"))
        .where(_scope_condition(scope))
        .where(WipTransaction.tran_date < before)
        .group_by(*columns)
    )


def daily_aggregates_stmt(
    scope: LedgerScope,
    window: ReportingWindow,
    by_service_line: bool = False,
    limit: int | None = None,
) -> Select:
    columns = [WipTransaction.tran_date, WipTransaction.t_type, WipTransaction.tran_type]
    if by_service_line:
        columns.append(WipTransaction.task_serv_line)
    stmt = (
        select(
            *columns,
            func.coalesce(func.sum(WipTransaction.amount), 0).label("total"),
            func.count().label("row_count"),
        )
        .where(_scope_condition(scope))
        .where(WipTransaction.tran_date >= window.start)
        .where(WipTransaction.tran_date <= window.end)
        .group_by(*columns)
        .order_by(*columns)
    )
    if limit is not None:
        stmt = stmt.limit(limit + 1)
    return stmt


def window_transactions_stmt(scope: LedgerScope, window: ReportingWindow, limit: int) -> Select:
    return (
        select(WipTransaction, Employee.emp_cat_code)
        .outerjoin(Employee, Employee.emp_code == WipTransaction.emp_code)
        .where(_scope_condition(scope))
        .where(WipTransaction.tran_date >= window.start)
        .where(WipTransaction.tran_date <= window.end)
        .order_by(WipTransaction.tran_date, WipTransaction.id)
        .limit(limit + 1)
    )


def group_members_stmt(group_code: str, limit: int) -> Select:
    return (
        select(Client.gs_client_id)
        .where(Client.group_code == group_code)
        .order_by(Client.gs_client_id)
        .limit(limit + 1)
    )


def _bounded(items: list, limit: int) -> BoundedFetch:
    if len(items) > limit:
        return BoundedFetch(items=items[:limit], limit=limit, limit_reached=True)
    return BoundedFetch(items=items, limit=limit, limit_reached=False)


def _to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class LedgerRepository(Protocol):
    """Data access the engine depends on."""

    async def get_task(self, task_id: int) -> TaskInfo | None: ...

    async def get_client(self, client_id: int) -> ClientInfo | None: ...

    async def get_group(self, group_code: str) -> GroupInfo | None: ...

    async def list_group_members(self, group_code: str, limit: int) -> BoundedFetch: ...

    async def opening_aggregates(
        self, scope: LedgerScope, before: date, by_service_line: bool = False
    ) -> list[TypeTotal]: ...

    async def daily_aggregates(
        self,
        scope: LedgerScope,
        window: ReportingWindow,
        by_service_line: bool = False,
        limit: int | None = None,
    ) -> BoundedFetch: ...

    async def window_transactions(
        self, scope: LedgerScope, window: ReportingWindow, limit: int
    ) -> BoundedFetch: ...

    async def service_line_mappings(self) -> dict[str, str | None]: ...

    async def master_service_lines(self, codes: Sequence[str]) -> list[MasterServiceLine]: ...


class SqlLedgerRepository:
    """LedgerRepository over the upstream database."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def get_task(self, task_id: int) -> TaskInfo | None:
        async with self._session_maker() as session:
            result = await session.execute(select(Task).where(Task.id == task_id))
            task = result.scalar_one_or_none()
        if task is None:
            return None
        return TaskInfo(
            task_id=task.id,
            entity_key=task.gs_task_id,
            task_code=task.task_code,
            task_desc=task.task_desc,
            service_line_code=task.serv_line_code,
        )

    async def get_client(self, client_id: int) -> ClientInfo | None:
        async with self._session_maker() as session:
            result = await session.execute(select(Client).where(Client.id == client_id))
            client = result.scalar_one_or_none()
        if client is None:
            return None
        return ClientInfo(
            client_id=client.id,
            client_key=client.gs_client_id,
            client_code=client.client_code,
            client_name=client.client_name,
            group_code=client.group_code,
        )

    async def get_group(self, group_code: str) -> GroupInfo | None:
        async with self._session_maker() as session:
            result = await session.execute(
                select(Client.group_code, Client.group_desc)
                .where(Client.group_code == group_code)
                .order_by(Client.gs_client_id)
                .limit(1)
            )
            row = result.first()
        if row is None:
            return None
        return GroupInfo(group_code=row.group_code, group_desc=row.group_desc)

    async def list_group_members(self, group_code: str, limit: int) -> BoundedFetch:
        async with self._session_maker() as session:
            result = await session.execute(group_members_stmt(group_code, limit))
            keys = [row[0] for row in result.all()]
        return _bounded(keys, limit)

    async def opening_aggregates(
        self, scope: LedgerScope, before: date, by_service_line: bool = False
    ) -> list[TypeTotal]:
        async with self._session_maker() as session:
            result = await session.execute(opening_aggregates_stmt(scope, before, by_service_line))
            rows = result.all()
        return [
            TypeTotal(
                type_code=row.t_type,
                total=_to_decimal(row.total),
                subtype_code=row.tran_type,
                service_line_code=row.task_serv_line if by_service_line else None,
            )
            for row in rows
        ]

    async def daily_aggregates(
        self,
        scope: LedgerScope,
        window: ReportingWindow,
        by_service_line: bool = False,
        limit: int | None = None,
    ) -> BoundedFetch:
        async with self._session_maker() as session:
            result = await session.execute(daily_aggregates_stmt(scope, window, by_service_line, limit))
            rows = result.all()
        items = [
            DailyTypeTotal(
                transaction_date=row.tran_date,
                type_code=row.t_type,
                total=_to_decimal(row.total),
                subtype_code=row.tran_type,
                service_line_code=row.task_serv_line if by_service_line else None,
                row_count=row.row_count,
            )
            for row in rows
        ]
        if limit is None:
            return BoundedFetch(items=items, limit=len(items), limit_reached=False)
        return _bounded(items, limit)

    async def window_transactions(
        self, scope: LedgerScope, window: ReportingWindow, limit: int
    ) -> BoundedFetch:
        async with self._session_maker() as session:
            result = await session.execute(window_transactions_stmt(scope, window, limit))
            rows = result.all()

        transactions = [
            LedgerTransaction(
                entity_key=txn.gs_task_id,
                transaction_date=txn.tran_date,
                type_code=txn.t_type,
                amount=_to_decimal(txn.amount),
                subtype_code=txn.tran_type,
                cost_amount=_to_decimal(txn.cost),
                hours_amount=_to_decimal(txn.hour),
                owner_employee_code=txn.emp_code,
                employee_category=emp_cat_code,
                service_line_code=txn.task_serv_line,
                client_key=txn.gs_client_id,
                updated_at=txn.updated_at,
            )
            for txn, emp_cat_code in rows
        ]
        fetch = _bounded(transactions, limit)

        type_counts = Counter(txn.type_code for txn in fetch.items)
        logger.info(
            "Ledger rows fetched",
            scope=scope.kind.value,
            scope_keys=len(scope.keys),
            window_start=window.start.isoformat(),
            window_end=window.end.isoformat(),
            row_count=fetch.count,
            type_counts=dict(type_counts),
            limit_reached=fetch.limit_reached,
        )
        if fetch.limit_reached:
            logger.warning(
                "Ledger row cap reached, results are partial",
                error_id=ErrorIds.WIP_ROW_CAP_REACHED,
                scope=scope.kind.value,
                limit=limit,
            )
        return fetch

    async def service_line_mappings(self) -> dict[str, str | None]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(ServiceLineExternal.serv_line_code, ServiceLineExternal.master_code)
                )
                rows = result.all()
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            raise MappingLoadError(f"Failed to load service line mappings: {exc}") from exc
        return {row.serv_line_code: row.master_code for row in rows}

    async def master_service_lines(self, codes: Sequence[str]) -> list[MasterServiceLine]:
        if not codes:
            return []
        async with self._session_maker() as session:
            result = await session.execute(
                select(ServiceLineMaster)
                .where(ServiceLineMaster.code.in_(list(codes)))
                .order_by(ServiceLineMaster.code)
            )
            masters = result.scalars().all()
        return [MasterServiceLine(code=master.code, name=master.name) for master in masters]
