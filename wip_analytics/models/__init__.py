"""SQLAlchemy models package."""

from wip_analytics.models.ledger import (
    Client,
    Employee,
    ServiceLineExternal,
    ServiceLineMaster,
    Task,
    WipTransaction,
)

__all__ = [
    "Client",
    "Employee",
    "ServiceLineExternal",
    "ServiceLineMaster",
    "Task",
    "WipTransaction",
]
