"""Purpose, audience and tone choices for text reformulation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ReformulationPurpose(str, Enum):
    """What the user wants to get across."""

    CONVEY = "伝えたい"
    DECLINE = "断りたい"
    APOLOGIZE = "謝りたい"
    CONSULT = "相談したい"
    REQUEST = "依頼したい"
    SHARE_FEELING = "気持ちを伝えたい"


class ReformulationAudience(str, Enum):
    """Who the message is for."""

    BOSS = "上司"
    COLLEAGUE = "同僚"
    FRIEND = "友人"
    PARTNER = "恋人"
    FAMILY = "家族"
    STRANGER = "初対面"

    @property
    def is_formal(self) -> bool:
        return self in (ReformulationAudience.BOSS, ReformulationAudience.STRANGER)


class ReformulationTone(str, Enum):
    """How the message should sound."""

    POLITE = "丁寧"
    SOFT = "柔らかい"
    CASUAL = "カジュアル"
    CLEAR = "はっきり"
    GENTLE = "優しい"


@dataclass(frozen=True)
class ReformulationContext:
    """Context passed to reformulation; part of the response cache key."""

    purpose: ReformulationPurpose = ReformulationPurpose.SHARE_FEELING
    audience: ReformulationAudience = ReformulationAudience.COLLEAGUE
    tone: ReformulationTone = ReformulationTone.SOFT

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.purpose.name, self.audience.name, self.tone.name)
