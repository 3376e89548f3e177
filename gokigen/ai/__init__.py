"""AI-backed features: coordination, prompts and local fallbacks."""

from gokigen.ai.cache import ResponseCache
from gokigen.ai.coordinator import (
    AIOutcome,
    AIRequestCoordinator,
    EmpathyResult,
    OutcomeSource,
    RequestKind,
    RequestToken,
)
from gokigen.ai.rules import reformulate_locally, rewrite_empathy

__all__ = [
    "AIOutcome",
    "AIRequestCoordinator",
    "EmpathyResult",
    "OutcomeSource",
    "RequestKind",
    "RequestToken",
    "ResponseCache",
    "reformulate_locally",
    "rewrite_empathy",
]
