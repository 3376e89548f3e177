"""Trend snapshot value type."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import ClassVar


@dataclass(frozen=True)
class TrendSnapshot:
    """Summary statistics over the most recent entries."""

    average_score: float
    positive_ratio: float
    negative_ratio: float
    consecutive_days: int
    sample_count: int
    last_updated: datetime
    dominant_emoji: str
    feedback: str

    EMPTY: ClassVar["TrendSnapshot"]

    @property
    def is_empty(self) -> bool:
        return self.sample_count == 0


TrendSnapshot.EMPTY = TrendSnapshot(
    average_score=0.0,
    positive_ratio=0.0,
    negative_ratio=0.0,
    consecutive_days=0,
    sample_count=0,
    last_updated=datetime.min.replace(tzinfo=timezone.utc),
    dominant_emoji="🙂",
    feedback="まだ記録がありません。今日の一言から始めてみましょう。",
)
