"""Domain models: entries, moods, reformulation context, trends."""

from gokigen.models.context import (
    ReformulationAudience,
    ReformulationContext,
    ReformulationPurpose,
    ReformulationTone,
)
from gokigen.models.entry import Entry, Mood, sort_newest_first
from gokigen.models.trend import TrendSnapshot

__all__ = [
    "Entry",
    "Mood",
    "sort_newest_first",
    "ReformulationAudience",
    "ReformulationContext",
    "ReformulationPurpose",
    "ReformulationTone",
    "TrendSnapshot",
]
