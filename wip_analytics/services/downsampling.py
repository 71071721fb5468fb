"""Bounded-point series for charts."""

from __future__ import annotations

import enum
import math
from collections.abc import Sequence

from wip_analytics.services.aggregation import DailyBucket


class Resolution(str, enum.Enum):
    """Chart resolution; each maps to a target point count in settings."""

    LOW = "low"
    STANDARD = "standard"
    HIGH = "high"


class DownsampleStrategy(str, enum.Enum):
    SMART = "smart"
    STRIDE = "stride"


def stride_downsample(buckets: Sequence[DailyBucket], target: int) -> list[DailyBucket]:
    """Keep every n-th bucket plus the last one, never more than ``target``."""
    if target <= 0:
        return []
    if len(buckets) <= target:
        return list(buckets)
    if target == 1:
        return [buckets[-1]]

    # Reserve one slot for the final bucket so the closing balance is always shown
    step = math.ceil((len(buckets) - 1) / (target - 1))
    sampled = list(buckets[: len(buckets) - 1 : step])
    sampled.append(buckets[-1])
    return sampled


def smart_downsample(buckets: Sequence[DailyBucket], target: int) -> list[DailyBucket]:
    """Keep every bucket with activity and fill the remaining points with zero days.

    Zero-activity buckets are taken at an even stride. The result exceeds
    ``target`` only when the active buckets alone exceed it.
    """
    if len(buckets) <= target:
        return list(buckets)

    active = [bucket for bucket in buckets if bucket.has_activity]
    idle = [bucket for bucket in buckets if not bucket.has_activity]

    remaining = target - len(active)
    if remaining <= 0 or not idle:
        return active

    step = max(1, math.ceil(len(idle) / remaining))
    kept = active + idle[::step][:remaining]
    kept.sort(key=lambda bucket: bucket.date)
    return kept


def downsample(
    buckets: Sequence[DailyBucket],
    target: int,
    strategy: DownsampleStrategy = DownsampleStrategy.SMART,
) -> list[DailyBucket]:
    if strategy is DownsampleStrategy.STRIDE:
        return stride_downsample(buckets, target)
    return smart_downsample(buckets, target)
