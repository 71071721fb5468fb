"""Shared constants."""

from wip_analytics.constants.error_ids import ErrorIds

__all__ = ["ErrorIds"]
