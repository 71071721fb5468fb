"""Input data contract between the data layer and the aggregation engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal


@dataclass(frozen=True)
class LedgerTransaction:
    """A single immutable ledger row as read from the upstream system."""

    entity_key: str
    transaction_date: date
    type_code: str
    amount: Decimal
    subtype_code: str | None = None
    cost_amount: Decimal | None = None
    hours_amount: Decimal | None = None
    owner_employee_code: str | None = None
    employee_category: str | None = None
    service_line_code: str | None = None
    client_key: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class TypeTotal:
    """Sum of amounts for one (type, subtype) group, used for opening balances.

    service_line_code is set when the data layer also grouped by service line.
    """

    type_code: str
    total: Decimal
    subtype_code: str | None = None
    service_line_code: str | None = None


@dataclass(frozen=True)
class DailyTypeTotal:
    """Sum of amounts for one (date, type) group inside a reporting window."""

    transaction_date: date
    type_code: str
    total: Decimal
    subtype_code: str | None = None
    service_line_code: str | None = None
    row_count: int = 0


@dataclass(frozen=True)
class TaskInfo:
    task_id: int
    entity_key: str
    task_code: str
    task_desc: str | None
    service_line_code: str | None


@dataclass(frozen=True)
class ClientInfo:
    client_id: int
    client_key: str
    client_code: str
    client_name: str | None
    group_code: str | None


@dataclass(frozen=True)
class GroupInfo:
    group_code: str
    group_desc: str | None


@dataclass(frozen=True)
class MasterServiceLine:
    code: str
    name: str


@dataclass(frozen=True)
class BoundedFetch:
    """Result of a capped fetch: the items plus whether the cap truncated them."""

    items: list
    limit: int
    limit_reached: bool

    @property
    def count(self) -> int:
        return len(self.items)
