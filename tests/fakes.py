"""In-memory stand-ins for the ledger repository."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import date
from decimal import Decimal

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
from wip_analytics.services.ledger_repository import LedgerScope, ScopeKind
from wip_analytics.services.periods import ReportingWindow


def txn(
    day: date,
    type_code: str,
    amount: str | int,
    *,
    task: str = "T1",
    client: str = "C1",
    subtype: str | None = None,
    cost: str | int | None = None,
    hours: str | int | None = None,
    employee_category: str | None = None,
    service_line: str | None = None,
) -> LedgerTransaction:
    return LedgerTransaction(
        entity_key=task,
        transaction_date=day,
        type_code=type_code,
        amount=Decimal(str(amount)),
        subtype_code=subtype,
        cost_amount=Decimal(str(cost)) if cost is not None else None,
        hours_amount=Decimal(str(hours)) if hours is not None else None,
        employee_category=employee_category,
        service_line_code=service_line,
        client_key=client,
    )


class FakeLedgerRepository:
    """Implements the LedgerRepository protocol over Python lists."""

    def __init__(self, transactions: Sequence[LedgerTransaction] = ()) -> None:
        self.transactions = list(transactions)
        self.tasks: dict[int, TaskInfo] = {}
        self.clients: dict[int, ClientInfo] = {}
        self.groups: dict[str, GroupInfo] = {}
        self.group_members: dict[str, list[str]] = defaultdict(list)
        self.mappings: dict[str, str | None] = {}
        self.masters: dict[str, str] = {}
        self.calls: list[str] = []

    def add_task(self, task_id: int, entity_key: str, task_code: str = "TASK") -> TaskInfo:
        info = TaskInfo(task_id, entity_key, task_code, f"{task_code} desc", None)
        self.tasks[task_id] = info
        return info

    def add_client(self, client_id: int, client_key: str, group_code: str | None = None) -> ClientInfo:
        info = ClientInfo(client_id, client_key, f"CL{client_id}", f"Client {client_id}", group_code)
        self.clients[client_id] = info
        if group_code:
            self.groups.setdefault(group_code, GroupInfo(group_code, f"Group {group_code}"))
            self.group_members[group_code].append(client_key)
        return info

    def _in_scope(self, item: LedgerTransaction, scope: LedgerScope) -> bool:
        if scope.kind is ScopeKind.TASK:
            return item.entity_key in scope.keys
        return item.client_key in scope.keys

    async def get_task(self, task_id: int) -> TaskInfo | None:
        self.calls.append("get_task")
        return self.tasks.get(task_id)

    async def get_client(self, client_id: int) -> ClientInfo | None:
        self.calls.append("get_client")
        return self.clients.get(client_id)

    async def get_group(self, group_code: str) -> GroupInfo | None:
        self.calls.append("get_group")
        return self.groups.get(group_code)

    async def list_group_members(self, group_code: str, limit: int) -> BoundedFetch:
        self.calls.append("list_group_members")
        keys = sorted(self.group_members.get(group_code, []))
        return BoundedFetch(items=keys[:limit], limit=limit, limit_reached=len(keys) > limit)

    async def opening_aggregates(
        self, scope: LedgerScope, before: date, by_service_line: bool = False
    ) -> list[TypeTotal]:
        self.calls.append("opening_aggregates")
        sums: dict[tuple, Decimal] = defaultdict(Decimal)
        for item in self.transactions:
            if self._in_scope(item, scope) and item.transaction_date < before:
                line = item.service_line_code if by_service_line else None
                sums[(item.type_code, item.subtype_code, line)] += item.amount
        return [
            TypeTotal(type_code=type_code, total=total, subtype_code=subtype, service_line_code=line)
            for (type_code, subtype, line), total in sums.items()
        ]

    async def daily_aggregates(
        self,
        scope: LedgerScope,
        window: ReportingWindow,
        by_service_line: bool = False,
        limit: int | None = None,
    ) -> BoundedFetch:
        self.calls.append("daily_aggregates")
        sums: dict[tuple, Decimal] = defaultdict(Decimal)
        counts: dict[tuple, int] = defaultdict(int)
        for item in self.transactions:
            if self._in_scope(item, scope) and window.contains(item.transaction_date):
                line = item.service_line_code if by_service_line else None
                key = (item.transaction_date, item.type_code, item.subtype_code, line)
                sums[key] += item.amount
                counts[key] += 1
        rows = [
            DailyTypeTotal(
                transaction_date=day,
                type_code=type_code,
                total=total,
                subtype_code=subtype,
                service_line_code=line,
                row_count=counts[(day, type_code, subtype, line)],
            )
            for (day, type_code, subtype, line), total in sorted(sums.items(), key=lambda kv: str(kv[0]))
        ]
        if limit is None:
            return BoundedFetch(items=rows, limit=len(rows), limit_reached=False)
        return BoundedFetch(items=rows[:limit], limit=limit, limit_reached=len(rows) > limit)

    async def window_transactions(
        self, scope: LedgerScope, window: ReportingWindow, limit: int
    ) -> BoundedFetch:
        self.calls.append("window_transactions")
        rows = [
            item
            for item in self.transactions
            if self._in_scope(item, scope) and window.contains(item.transaction_date)
        ]
        rows.sort(key=lambda item: item.transaction_date)
        return BoundedFetch(items=rows[:limit], limit=limit, limit_reached=len(rows) > limit)

    async def service_line_mappings(self) -> dict[str, str | None]:
        self.calls.append("service_line_mappings")
        return dict(self.mappings)

    async def master_service_lines(self, codes: Sequence[str]) -> list[MasterServiceLine]:
        return [MasterServiceLine(code, self.masters[code]) for code in sorted(codes) if code in self.masters]
