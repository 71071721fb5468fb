"""Stable error identifiers for log correlation and alerting."""


class ErrorIds:
    """Error IDs attached to degraded-path log events.

    Values are stable strings so dashboards and alerts can key on them.
    """

    WIP_UNCATEGORIZED_TRANSACTIONS = "WIP_UNCATEGORIZED_TRANSACTIONS"
    WIP_ROW_CAP_REACHED = "WIP_ROW_CAP_REACHED"
    WIP_ENTITY_CAP_REACHED = "WIP_ENTITY_CAP_REACHED"
    WIP_CACHE_UNAVAILABLE = "WIP_CACHE_UNAVAILABLE"
    WIP_CACHE_DECODE_FAILED = "WIP_CACHE_DECODE_FAILED"
    WIP_MAPPING_RELOAD_FAILED = "WIP_MAPPING_RELOAD_FAILED"
    WIP_SCOPE_NOT_FOUND = "WIP_SCOPE_NOT_FOUND"
    WIP_INVALID_WINDOW = "WIP_INVALID_WINDOW"
