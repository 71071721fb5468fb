"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from wip_analytics.deps import AnalyticsEngine, DbSession

    async def my_endpoint(engine: AnalyticsEngine, db: DbSession):
        # engine is the WipAnalyticsEngine built at startup
        # db is AsyncSession with get_db dependency injected
        ...
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from wip_analytics.database import get_db
from wip_analytics.services.wip_engine import WipAnalyticsEngine


def get_engine(request: Request) -> WipAnalyticsEngine:
    """Engine instance created in the application lifespan."""
    return request.app.state.engine


DbSession = Annotated[AsyncSession, Depends(get_db)]
AnalyticsEngine = Annotated[WipAnalyticsEngine, Depends(get_engine)]

__all__ = ["AnalyticsEngine", "DbSession", "get_engine"]
