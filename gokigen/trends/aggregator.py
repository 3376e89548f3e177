"""Pure trend statistics over recent entries."""

from __future__ import annotations

from datetime import date, tzinfo, timezone
from typing import Iterable

from gokigen.models.entry import Entry, sort_newest_first
from gokigen.models.trend import TrendSnapshot

DEFAULT_WINDOW = 14


def _streak(days: list[date]) -> int:
    """Consecutive calendar days counted back from days[0] (newest first)."""
    if not days:
        return 0
    count = 1
    last = days[0]
    for day in days[1:]:
        gap = (last - day).days
        if gap == 0:
            continue
        if gap != 1:
            break
        count += 1
        last = day
    return count


def summarize(
    entries: Iterable[Entry],
    window: int = DEFAULT_WINDOW,
    tz: tzinfo = timezone.utc,
) -> TrendSnapshot:
    """
    Summarize the most recent `window` entries.

    Args:
        entries: Entries in any order.
        window: How many of the newest entries to consider.
        tz: Timezone whose calendar days define the streak.

    Returns:
        TrendSnapshot, or TrendSnapshot.EMPTY when there are no entries.
    """
    latest = sort_newest_first(list(entries))[: max(0, window)]
    if not latest:
        return TrendSnapshot.EMPTY

    count = len(latest)
    average = sum(int(e.mood) for e in latest) / count
    positives = sum(1 for e in latest if e.mood.is_positive)
    negatives = sum(1 for e in latest if e.mood.is_negative)
    tendency = "少し前向き" if average >= 0 else "少しお疲れ気味"

    return TrendSnapshot(
        average_score=average,
        positive_ratio=positives / count,
        negative_ratio=negatives / count,
        consecutive_days=_streak([e.date.astimezone(tz).date() for e in latest]),
        sample_count=count,
        last_updated=latest[0].date,
        dominant_emoji=latest[0].mood.emoji,
        feedback=f"{count}件は{tendency}。平均 {average:.1f}、ポジ {positives}／ネガ {negatives}。",
    )
