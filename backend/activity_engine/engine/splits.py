from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


@dataclass(frozen=True)
class SplitStats:
    best_pace_seconds_per_km: int | None = None
    best_split_index: int | None = None
    worst_split_index: int | None = None


def _split_pace(split: Any) -> int | None:
    if isinstance(split, dict):
        raw = split.get("pace_seconds_per_km")
        if raw is None:
            raw = split.get("paceSecondsPerKm")
    else:
        raw = getattr(split, "pace_seconds_per_km", None)
    if raw is None:
        return None
    try:
        pace = int(raw)
    except (TypeError, ValueError):
        return None
    return pace if pace > 0 else None


def split_stats(splits: Iterable[Any] | None) -> SplitStats:
    """Best pace plus best and worst split positions, first occurrence wins.

    Splits without a positive pace keep their position but are ignored.
    """
    paces = [_split_pace(split) for split in (splits or [])]
    valid = [(index, pace) for index, pace in enumerate(paces) if pace is not None]
    if not valid:
        return SplitStats()

    best_pace = min(pace for _, pace in valid)
    worst_pace = max(pace for _, pace in valid)
    best_index = next(index for index, pace in valid if pace == best_pace)
    worst_index = next(index for index, pace in valid if pace == worst_pace)
    return SplitStats(
        best_pace_seconds_per_km=best_pace,
        best_split_index=best_index,
        worst_split_index=worst_index,
    )
