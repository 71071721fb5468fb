"""Router tests for analytics API endpoints.

Tests all endpoints in wip_analytics/routers/analytics.py:
- GET /analytics/tasks/{task_id}/graphs
- GET /analytics/clients/{client_id}/graphs
- GET /analytics/groups/{group_code}/graphs
- GET /analytics/clients/{client_id}/wip
- GET /analytics/groups/{group_code}/wip
"""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from tests.fakes import txn
from wip_analytics.config import settings


@pytest.mark.asyncio
class TestGraphEndpoints:
    async def test_task_graphs_camel_case_payload(self, client: AsyncClient, repository) -> None:
        # GIVEN a task with production, billing and a provision
        repository.add_task(42, "T42", task_code="AUDIT24")
        repository.transactions = [
            txn(date(2024, 1, 1), "TIME", 100, task="T42"),
            txn(date(2024, 1, 1), "FEE", -40, task="T42"),
            txn(date(2024, 1, 2), "PROV", -10, task="T42"),
        ]

        # WHEN requesting the task series
        response = await client.get("/analytics/tasks/42/graphs")

        # THEN the payload uses camelCase keys
        assert response.status_code == 200
        data = response.json()
        assert data["taskCode"] == "AUDIT24"
        assert data["dailyMetrics"][0]["date"] == "2024-01-01"
        assert Decimal(data["dailyMetrics"][0]["wipBalance"]) == Decimal("60")
        assert Decimal(data["summary"]["currentWipBalance"]) == Decimal("50")
        assert data["limitReached"] is False
        assert response.headers["Cache-Control"] == "no-store"
        assert "X-Request-ID" in response.headers

    async def test_task_not_found(self, client: AsyncClient) -> None:
        response = await client.get("/analytics/tasks/42/graphs")

        assert response.status_code == 404
        assert response.json()["detail"] == "Task 42 not found"

    async def test_unknown_resolution_is_422(self, client: AsyncClient, repository) -> None:
        repository.add_task(42, "T42")
        response = await client.get("/analytics/tasks/42/graphs", params={"resolution": "ultra"})
        assert response.status_code == 422

    async def test_group_graphs_by_master_service_line(self, client: AsyncClient, repository) -> None:
        repository.add_client(1, "C1", group_code="G1")
        repository.mappings = {"TAX1": "TAX"}
        repository.masters = {"TAX": "Taxation"}
        repository.transactions = [txn(date(2024, 3, 1), "TIME", 25, client="C1", service_line="TAX1")]

        response = await client.get("/analytics/groups/G1/graphs", params={"resolution": "high"})

        assert response.status_code == 200
        data = response.json()
        assert data["scope"] == "group"
        assert data["memberCount"] == 1
        assert list(data["byMasterServiceLine"]) == ["TAX"]
        assert data["masterServiceLines"] == [{"code": "TAX", "name": "Taxation"}]

    async def test_client_graphs_not_found(self, client: AsyncClient) -> None:
        response = await client.get("/analytics/clients/9/graphs")
        assert response.status_code == 404


@pytest.mark.asyncio
class TestWipEndpoints:
    async def test_client_wip_fiscal_window(self, client: AsyncClient, repository) -> None:
        repository.add_client(3, "C3")
        repository.transactions = [
            txn(date(2024, 3, 1), "TIME", 1000, client="C3", cost=400, hours=10),
            txn(date(2024, 3, 3), "FEE", -600, client="C3"),
        ]

        response = await client.get(
            "/analytics/clients/3/wip",
            params={"mode": "fiscal", "fiscal_year": 2024, "fiscal_month": "March"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["windowStart"] == "2023-09-01"
        assert data["windowEnd"] == "2024-03-31"
        assert Decimal(data["overall"]["metrics"]["grossProfit"]) == Decimal("600")
        assert Decimal(data["overall"]["summary"]["currentWipBalance"]) == Decimal("400")
        assert Decimal(data["overall"]["balTime"]) == Decimal("400.00")
        assert Decimal(data["overall"]["balDisb"]) == Decimal("0.00")

    async def test_custom_window_without_dates_is_400(self, client: AsyncClient, repository) -> None:
        repository.add_client(3, "C3")
        response = await client.get("/analytics/clients/3/wip", params={"mode": "custom"})
        assert response.status_code == 400

    async def test_unknown_mode_is_422(self, client: AsyncClient) -> None:
        response = await client.get("/analytics/groups/G1/wip", params={"mode": "weekly"})
        assert response.status_code == 422

    async def test_group_wip_not_found(self, client: AsyncClient) -> None:
        response = await client.get("/analytics/groups/NOPE/wip")
        assert response.status_code == 404
        assert response.json()["detail"] == "Group NOPE not found"


@pytest.mark.asyncio
class TestHealthEndpoints:
    async def test_ping(self, client: AsyncClient) -> None:
        response = await client.get("/ping")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_health_ok(self, client: AsyncClient) -> None:
        from wip_analytics.database import get_db
        from wip_analytics.main import app

        session = MagicMock()
        session.execute = AsyncMock()

        async def fake_db():
            yield session

        app.dependency_overrides[get_db] = fake_db
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"] == {"database": True}
        assert data["environment"] == settings.environment

    async def test_health_database_down(self, client: AsyncClient) -> None:
        from wip_analytics.database import get_db
        from wip_analytics.main import app

        session = MagicMock()
        session.execute = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("refused")))

        async def fake_db():
            yield session

        app.dependency_overrides[get_db] = fake_db
        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
