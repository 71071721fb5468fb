"""External service-line code to master service-line mapping with TTL caching."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping

from wip_analytics.constants.error_ids import ErrorIds
from wip_analytics.logger import get_logger
from wip_analytics.services.categorization import normalize_code
from wip_analytics.services.errors import MappingLoadError

logger = get_logger(__name__)

UNKNOWN_SERVICE_LINE = "UNKNOWN"

MappingLoader = Callable[[], Awaitable[Mapping[str, str | None]]]


class ServiceLineTable:
    """Immutable snapshot of the mapping table."""

    def __init__(self, mappings: Mapping[str, str | None]) -> None:
        self._mappings: dict[str, str] = {}
        for external, master in mappings.items():
            external_key = normalize_code(external)
            master_key = normalize_code(master)
            if external_key and master_key:
                self._mappings[external_key] = master_key

    def __len__(self) -> int:
        return len(self._mappings)

    def master_for(self, external_code: str | None) -> str:
        key = normalize_code(external_code)
        if key is None:
            return UNKNOWN_SERVICE_LINE
        return self._mappings.get(key, UNKNOWN_SERVICE_LINE)


class ServiceLineMapper:
    """Bulk-loads the mapping table and serves lookups from memory.

    The table is reloaded once it is older than ``ttl_seconds``. When a
    reload fails the previous table keeps being served; when nothing was
    ever loaded every code maps to UNKNOWN.
    """

    def __init__(
        self,
        loader: MappingLoader,
        ttl_seconds: int = 600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._table: ServiceLineTable | None = None
        self._expires_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._table is not None

    def _is_fresh(self) -> bool:
        # Failed loads set a backoff deadline too, loaded table or not
        return self._expires_at is not None and self._clock() < self._expires_at

    async def table(self) -> ServiceLineTable:
        """Return a current table, reloading when expired."""
        if not self._is_fresh():
            async with self._lock:
                if not self._is_fresh():
                    await self._reload()

        if self._table is None:
            return ServiceLineTable({})
        return self._table

    async def _reload(self) -> None:
        try:
            mappings = await self._loader()
        except (MappingLoadError, OSError, TimeoutError) as exc:
            logger.warning(
                "Service line mapping reload failed, serving previous table",
                error_id=ErrorIds.WIP_MAPPING_RELOAD_FAILED,
                error=str(exc),
                error_type=type(exc).__name__,
                has_stale_table=self._table is not None,
            )
            # Back off before the next reload attempt
            self._expires_at = self._clock() + min(self._ttl_seconds, 60)
            return

        self._table = ServiceLineTable(mappings)
        self._expires_at = self._clock() + self._ttl_seconds
        logger.info(
            "Service line mappings loaded",
            mapping_count=len(self._table),
            ttl_seconds=self._ttl_seconds,
        )

    async def map_to_master(self, external_code: str | None) -> str:
        table = await self.table()
        return table.master_for(external_code)

    def invalidate(self) -> None:
        self._expires_at = None
