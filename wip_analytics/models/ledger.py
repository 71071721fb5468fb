"""Read-only mappings of the upstream ledger tables.

The practice-management system writes these tables; this service never
inserts, updates or deletes rows. Column names follow the upstream schema.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, Date, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wip_analytics.database import Base


class WipTransaction(Base):
    """One immutable WIP ledger row (time, fee, adjustment, disbursement, provision)."""

    __tablename__ = "WIPTransactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gs_task_id: Mapped[str] = mapped_column("GSTaskID", String(64), nullable=False, index=True)
    gs_client_id: Mapped[str | None] = mapped_column("GSClientID", String(64), nullable=True, index=True)
    task_serv_line: Mapped[str | None] = mapped_column("TaskServLine", String(32), nullable=True)
    tran_date: Mapped[date] = mapped_column("TranDate", Date, nullable=False)
    t_type: Mapped[str] = mapped_column("TType", String(16), nullable=False)
    tran_type: Mapped[str | None] = mapped_column("TranType", String(32), nullable=True)
    amount: Mapped[Decimal | None] = mapped_column("Amount", DECIMAL(18, 2), nullable=True)
    cost: Mapped[Decimal | None] = mapped_column("Cost", DECIMAL(18, 2), nullable=True)
    hour: Mapped[Decimal | None] = mapped_column("Hour", DECIMAL(18, 2), nullable=True)
    emp_code: Mapped[str | None] = mapped_column("EmpCode", String(32), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column("updatedAt", DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<WipTransaction {self.id} {self.t_type} {self.tran_date} {self.amount}>"


class Task(Base):
    """Engagement task owning WIP transactions."""

    __tablename__ = "Task"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gs_task_id: Mapped[str] = mapped_column("GSTaskID", String(64), nullable=False, unique=True)
    gs_client_id: Mapped[str | None] = mapped_column("GSClientID", String(64), nullable=True)
    task_code: Mapped[str] = mapped_column("TaskCode", String(32), nullable=False)
    task_desc: Mapped[str | None] = mapped_column("TaskDesc", String(255), nullable=True)
    serv_line_code: Mapped[str | None] = mapped_column("ServLineCode", String(32), nullable=True)


class Client(Base):
    """Client record; clients sharing a group code form a client group."""

    __tablename__ = "Client"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gs_client_id: Mapped[str] = mapped_column("GSClientID", String(64), nullable=False, unique=True)
    client_code: Mapped[str] = mapped_column("clientCode", String(32), nullable=False)
    client_name: Mapped[str | None] = mapped_column("clientNameFull", String(255), nullable=True)
    group_code: Mapped[str | None] = mapped_column("groupCode", String(32), nullable=True, index=True)
    group_desc: Mapped[str | None] = mapped_column("groupDesc", String(255), nullable=True)


class Employee(Base):
    """Employee with a category code used by the cost override rule."""

    __tablename__ = "Employee"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    emp_code: Mapped[str] = mapped_column("EmpCode", String(32), nullable=False, unique=True)
    emp_cat_code: Mapped[str | None] = mapped_column("EmpCatCode", String(16), nullable=True)


class ServiceLineExternal(Base):
    """External service-line code mapped onto a master service line."""

    __tablename__ = "ServiceLineExternal"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    serv_line_code: Mapped[str] = mapped_column("ServLineCode", String(32), nullable=False)
    master_code: Mapped[str | None] = mapped_column("masterCode", String(32), nullable=True)


class ServiceLineMaster(Base):
    """Canonical (master) service line."""

    __tablename__ = "ServiceLineMaster"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
