"""
Serialization, de-duplication and metering of AI requests.

Two features hit the text-generation service: empathy generation and
reformulation. They share one busy flag, one quota pool and one local
daily network-call budget. A request goes through, in order:

1. busy check: any request in flight rejects the new one (no queueing)
2. exact-match cache: a hit costs nothing
3. daily network budget: when exhausted, answer from local rules
4. quota: when exhausted, refuse (the caller shows the paywall);
   otherwise mint a token, consume quota, count the call and send it

A response is only applied if its token is still the current one for its
kind; callers can abandon a request with invalidate(). The busy flag is
always released, whatever the outcome.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Generic, Hashable, TypeVar

from loguru import logger

from gokigen.ai.cache import ResponseCache
from gokigen.ai.prompts import (
    build_empathy_prompt,
    build_reformulation_prompt,
    clean_reformulation,
    parse_empathy_response,
)
from gokigen.ai.rules import reformulate_locally, rewrite_empathy
from gokigen.errors import (
    EmptyInputError,
    NetworkBudgetExceededError,
    QuotaExceededError,
    RequestInFlightError,
    StaleResponseError,
)
from gokigen.models.context import ReformulationContext
from gokigen.models.entry import Mood
from gokigen.providers.base import LLMProvider
from gokigen.quota.manager import QuotaManager, day_key
from gokigen.storage.kv import KeyValueStore, PeriodCounter
from gokigen.utils.helpers import utcnow, with_timeout

V = TypeVar("V")

NETWORK_COUNTER = "ai.network.day"


class RequestKind(str, Enum):
    """The two AI-backed operations."""

    EMPATHY = "empathy"
    REFORMULATION = "reformulation"


class OutcomeSource(str, Enum):
    """Where a result came from."""

    REMOTE = "remote"
    CACHE = "cache"
    BUDGET_FALLBACK = "budget_fallback"  # Local rules, daily network budget exhausted
    ERROR_FALLBACK = "error_fallback"  # Local rules, remote call failed


@dataclass(frozen=True)
class RequestToken:
    """Marks one logical AI request of a kind."""

    kind: RequestKind
    serial: int


@dataclass(frozen=True)
class EmpathyResult:
    empathy: str
    next_step: str


@dataclass
class AIOutcome(Generic[V]):
    """Result of a coordinated AI request."""

    kind: RequestKind
    value: V
    source: OutcomeSource
    notice: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.source in (OutcomeSource.BUDGET_FALLBACK, OutcomeSource.ERROR_FALLBACK)


class AIRequestCoordinator:
    """Single gate for every AI call made by the app."""

    BUDGET_NOTICE = "本日のAI利用回数の上限に達したので、手元のアイデアで続けるね。"
    EMPATHY_ERROR_NOTICE = "今は手元のアイデアで続けるね。"
    REFORMULATION_ERROR_NOTICE = "言い換えに失敗したので、簡易版で整えました。もう一度お試しください。"

    def __init__(
        self,
        provider: LLMProvider,
        quota: QuotaManager,
        store: KeyValueStore,
        daily_network_limit: int = 20,
        cache_capacity: int = 50,
        timeout_s: float | None = 30.0,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ):
        self.provider = provider
        self.quota = quota
        self.daily_network_limit = daily_network_limit
        self.timeout_s = timeout_s
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

        self._network = PeriodCounter(store, NETWORK_COUNTER)
        self._empathy_cache: ResponseCache[EmpathyResult] = ResponseCache(cache_capacity)
        self._reformulation_cache: ResponseCache[str] = ResponseCache(cache_capacity)
        self._serials = itertools.count(1)
        self._tokens: dict[RequestKind, RequestToken | None] = {kind: None for kind in RequestKind}
        self._in_flight: RequestKind | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> RequestKind | None:
        return self._in_flight

    @property
    def is_busy(self) -> bool:
        return self._in_flight is not None

    def current_token(self, kind: RequestKind) -> RequestToken | None:
        return self._tokens[kind]

    def invalidate(self, kind: RequestKind) -> None:
        """Mark any in-flight request of this kind as unwanted."""
        self._tokens[kind] = None

    def _mint(self, kind: RequestKind) -> RequestToken:
        token = RequestToken(kind=kind, serial=next(self._serials))
        self._tokens[kind] = token
        return token

    def network_calls_today(self, now: datetime | None = None) -> int:
        return self._network.value(day_key(now or utcnow(), self.quota.tz))

    def network_budget_exhausted(self, now: datetime | None = None) -> bool:
        return self.network_calls_today(now) >= self.daily_network_limit

    def _check_network_budget(self, period: str) -> None:
        if self._network.value(period) >= self.daily_network_limit:
            raise NetworkBudgetExceededError(f"daily network budget ({self.daily_network_limit}) exhausted")

    def clear_cache(self) -> None:
        self._empathy_cache.clear()
        self._reformulation_cache.clear()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def request_empathy(
        self,
        text: str,
        mood: Mood,
        force_refresh: bool = False,
        now: datetime | None = None,
    ) -> AIOutcome[EmpathyResult]:
        """
        Generate an empathy message and a next step for the text.

        Raises:
            EmptyInputError: If text is blank.
            RequestInFlightError: If any AI request is already running.
            QuotaExceededError: If the plan's allowance is exhausted.
            StaleResponseError: If the request was invalidated while running.
        """
        trimmed = text.strip()
        if not trimmed:
            raise EmptyInputError("empathy input is empty")

        def _fallback() -> EmpathyResult:
            empathy, next_step = rewrite_empathy(trimmed, mood)
            return EmpathyResult(empathy=empathy, next_step=next_step)

        def _parse(raw: str) -> EmpathyResult:
            empathy, next_step = parse_empathy_response(raw)
            return EmpathyResult(empathy=empathy, next_step=next_step)

        return await self._run(
            kind=RequestKind.EMPATHY,
            cache=self._empathy_cache,
            cache_key=trimmed,
            prompt=build_empathy_prompt(trimmed),
            parse=_parse,
            fallback=_fallback,
            error_notice=self.EMPATHY_ERROR_NOTICE,
            use_cache=not force_refresh,
            now=now,
        )

    async def reformulate(
        self,
        text: str,
        context: ReformulationContext,
        now: datetime | None = None,
    ) -> AIOutcome[str]:
        """
        Reformulate the text for the given purpose, audience and tone.

        The cache key includes the context: the same text under a different
        context is a different request.

        Raises:
            EmptyInputError, RequestInFlightError, QuotaExceededError,
            StaleResponseError: As for request_empathy().
        """
        trimmed = text.strip()
        if not trimmed:
            raise EmptyInputError("reformulation input is empty")

        return await self._run(
            kind=RequestKind.REFORMULATION,
            cache=self._reformulation_cache,
            cache_key=(trimmed, context.key),
            prompt=build_reformulation_prompt(trimmed, context),
            parse=clean_reformulation,
            fallback=lambda: reformulate_locally(trimmed, context),
            error_notice=self.REFORMULATION_ERROR_NOTICE,
            now=now,
        )

    async def _run(
        self,
        kind: RequestKind,
        cache: ResponseCache[V],
        cache_key: Hashable,
        prompt: str,
        parse: Callable[[str], V],
        fallback: Callable[[], V],
        error_notice: str,
        use_cache: bool = True,
        now: datetime | None = None,
    ) -> AIOutcome[V]:
        if self._in_flight is not None:
            raise RequestInFlightError(f"{self._in_flight.value} request already in flight")

        if use_cache:
            cached = cache.get(cache_key)
            if cached is not None:
                logger.debug("AI cache hit for {}", kind.value)
                return AIOutcome(kind=kind, value=cached, source=OutcomeSource.CACHE)

        now = now or utcnow()
        period = day_key(now, self.quota.tz)
        try:
            self._check_network_budget(period)
        except NetworkBudgetExceededError as e:
            logger.info("{}, using local {}", e, kind.value)
            return AIOutcome(
                kind=kind,
                value=fallback(),
                source=OutcomeSource.BUDGET_FALLBACK,
                notice=self.BUDGET_NOTICE,
            )

        if not self.quota.can_consume(now):
            raise QuotaExceededError(self.quota.remaining_text(now))

        token = self._mint(kind)
        self._in_flight = kind
        self.quota.consume(now)
        self._network.increment(period)
        logger.info("Sending {} request (token {})", kind.value, token.serial)

        try:
            raw = await with_timeout(
                self.provider.generate(
                    prompt,
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                ),
                self.timeout_s,
                what=f"{kind.value} request",
            )
            value = parse(raw)
        except Exception as e:
            logger.warning("{} request failed: {}", kind.value, e)
            if self._tokens[kind] != token:
                raise StaleResponseError(f"{kind.value} token {token.serial} superseded") from e
            self._tokens[kind] = None
            return AIOutcome(
                kind=kind,
                value=fallback(),
                source=OutcomeSource.ERROR_FALLBACK,
                notice=error_notice,
            )
        finally:
            self._in_flight = None

        if self._tokens[kind] != token:
            logger.debug("Discarding stale {} response (token {})", kind.value, token.serial)
            raise StaleResponseError(f"{kind.value} token {token.serial} superseded")

        self._tokens[kind] = None
        cache.put(cache_key, value)
        return AIOutcome(kind=kind, value=value, source=OutcomeSource.REMOTE)
