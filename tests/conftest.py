"""Test fixtures and configuration."""

import logging
import sys
from datetime import date

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient

from tests.fakes import FakeLedgerRepository
from wip_analytics.config import Settings
from wip_analytics.services.cache import MemoryCacheBackend, ResultCache
from wip_analytics.services.service_lines import ServiceLineMapper
from wip_analytics.services.wip_engine import WipAnalyticsEngine

TODAY = date(2024, 6, 30)


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=False),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest.fixture
def app_settings() -> Settings:
    return Settings(_env_file=None, redis_url=None)


@pytest.fixture
def repository() -> FakeLedgerRepository:
    return FakeLedgerRepository()


@pytest.fixture
def result_cache() -> ResultCache:
    return ResultCache(MemoryCacheBackend(maxsize=64))


@pytest.fixture
def wip_engine(repository, result_cache, app_settings) -> WipAnalyticsEngine:
    return WipAnalyticsEngine(
        repository=repository,
        cache=result_cache,
        mapper=ServiceLineMapper(repository.service_line_mappings, ttl_seconds=600),
        app_settings=app_settings,
        today=lambda: TODAY,
    )


@pytest_asyncio.fixture
async def client(wip_engine):
    """HTTP client against the app with the engine swapped for a fake-backed one."""
    from wip_analytics.deps import get_engine
    from wip_analytics.main import app

    app.dependency_overrides[get_engine] = lambda: wip_engine
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()
