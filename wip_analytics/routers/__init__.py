from wip_analytics.routers import analytics

__all__ = ["analytics"]
