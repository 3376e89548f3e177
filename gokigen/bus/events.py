"""User-facing notice events."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from gokigen.utils.helpers import utcnow


class NoticeKind(str, Enum):
    """Kinds of notice the UI layer can show."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    REDUCED = "reduced"  # Working from local rules instead of the AI service
    PAYWALL = "paywall"


@dataclass
class Notice:
    """A short message for the user, published on the bus."""

    kind: NoticeKind
    message: str
    display_s: float = 3.5
    created_at: datetime = field(default_factory=utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)
