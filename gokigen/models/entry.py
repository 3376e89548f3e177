"""Journal entry and mood types."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any
from uuid import UUID, uuid4

from gokigen.utils.helpers import as_aware, utcnow


class Mood(IntEnum):
    """Five ordered mood levels, scored -2..+2."""

    VERY_HAPPY = 2
    HAPPY = 1
    NEUTRAL = 0
    SAD = -1
    VERY_SAD = -2

    @property
    def emoji(self) -> str:
        return _MOOD_EMOJI[self]

    @property
    def label(self) -> str:
        return _MOOD_LABELS[self]

    @property
    def is_positive(self) -> bool:
        return self.value > 0

    @property
    def is_negative(self) -> bool:
        return self.value < 0


_MOOD_EMOJI = {
    Mood.VERY_HAPPY: "😊",
    Mood.HAPPY: "🙂",
    Mood.NEUTRAL: "😐",
    Mood.SAD: "😞",
    Mood.VERY_SAD: "😢",
}

_MOOD_LABELS = {
    Mood.VERY_HAPPY: "とても良い",
    Mood.HAPPY: "良い",
    Mood.NEUTRAL: "ふつう",
    Mood.SAD: "少しつらい",
    Mood.VERY_SAD: "つらい",
}


@dataclass(frozen=True)
class Entry:
    """
    A single journal entry.

    Entries are immutable records. Edits produce a new record with the same
    id and a newer updated_at (see revised()); updated_at is never earlier
    than date.
    """

    mood: Mood
    original_text: str
    id: UUID = field(default_factory=uuid4)
    date: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None
    reformulated_text: str | None = None
    empathy_text: str | None = None
    next_step: str | None = None

    def __post_init__(self) -> None:
        date = as_aware(self.date)
        object.__setattr__(self, "date", date)
        object.__setattr__(self, "mood", Mood(self.mood))
        updated_at = as_aware(self.updated_at) if self.updated_at else date
        object.__setattr__(self, "updated_at", max(updated_at, date))

    def revised(self, now: datetime | None = None, **changes: Any) -> "Entry":
        """Return a whole-record replacement with a fresh updated_at."""
        changes.pop("id", None)
        return dataclasses.replace(self, updated_at=now or utcnow(), **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": str(self.id),
            "date": self.date.isoformat(),
            "mood": int(self.mood),
            "originalText": self.original_text,
            "reformulatedText": self.reformulated_text,
            "empathyText": self.empathy_text,
            "nextStep": self.next_step,
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Entry":
        """
        Create from dictionary (JSON deserialization).

        Raises:
            KeyError, ValueError, TypeError: On missing or malformed fields.
        """
        date = datetime.fromisoformat(data["date"])
        updated_raw = data.get("updatedAt")
        return cls(
            id=UUID(str(data["id"])),
            date=date,
            mood=Mood(int(data["mood"])),
            original_text=str(data["originalText"]),
            reformulated_text=data.get("reformulatedText") or None,
            empathy_text=data.get("empathyText") or None,
            next_step=data.get("nextStep") or None,
            updated_at=datetime.fromisoformat(updated_raw) if updated_raw else None,
        )


def sort_newest_first(entries: list[Entry]) -> list[Entry]:
    """Sort entries by creation date, newest first."""
    return sorted(entries, key=lambda e: e.date, reverse=True)
