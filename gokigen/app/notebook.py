"""
Notebook: the app's view model.

Holds the draft being written and exposes every user action. It is the
only externally-facing layer: each action resolves to a value or to a
notice on the bus, and no GokigenError escapes to the caller.
"""

from __future__ import annotations

import random
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Iterable
from uuid import UUID

from loguru import logger

from gokigen.ai.coordinator import (
    AIOutcome,
    AIRequestCoordinator,
    EmpathyResult,
    OutcomeSource,
    RequestKind,
)
from gokigen.ai.rules import rewrite_empathy
from gokigen.app.paywall import PaywallCoordinator
from gokigen.bus.events import Notice, NoticeKind
from gokigen.bus.observable import Observable
from gokigen.bus.queue import MessageBus
from gokigen.errors import (
    EmptyInputError,
    QuotaExceededError,
    RequestInFlightError,
    StaleResponseError,
)
from gokigen.export import export_json, export_markdown
from gokigen.models.context import ReformulationContext
from gokigen.models.entry import Entry, Mood
from gokigen.models.prompts import example_sentence, random_prompt
from gokigen.models.trend import TrendSnapshot
from gokigen.quota.entitlements import EntitlementService
from gokigen.quota.manager import Plan, QuotaManager
from gokigen.sync.engine import SyncEngine
from gokigen.sync.network import NetworkMonitor
from gokigen.trends.aggregator import summarize


class Copy:
    """User-facing strings."""

    SAVE_SUCCESS = "あなたの今が書き留められたよ。"
    EMPTY_DRAFT = "まず一言だけ書いてみませんか？"
    BUSY = "ただいま生成中です。少し待ってからもう一度お試しください。"
    QUOTA_EXCEEDED = "AIの利用回数の上限に達しました。"
    DELETE_ALL_SUCCESS = "すべての記録を削除しました。"


class Notebook:
    """User actions over the draft, the entry list and the AI features."""

    def __init__(
        self,
        sync: SyncEngine,
        coordinator: AIRequestCoordinator,
        quota: QuotaManager,
        bus: MessageBus,
        paywall: PaywallCoordinator,
        entitlements: EntitlementService | None = None,
        network: NetworkMonitor | None = None,
        trend_window: int = 14,
        recent_count: int = 7,
        tz: tzinfo = timezone.utc,
        success_display_s: float = 2.5,
        error_display_s: float = 3.5,
        rng: random.Random | None = None,
    ):
        self.sync = sync
        self.coordinator = coordinator
        self.quota = quota
        self.bus = bus
        self.paywall = paywall
        self.entitlements = entitlements
        self.network = network
        self.trend_window = trend_window
        self.recent_count = recent_count
        self.tz = tz
        self.success_display_s = success_display_s
        self.error_display_s = error_display_s
        self._rng = rng or random.Random()

        # Inputs
        self.selected_mood: Mood = Mood.NEUTRAL
        self.draft_text: str = ""
        self.reformulation_context = ReformulationContext()
        self.current_prompt: str = random_prompt(self._rng)

        # Outputs
        self.empathy_draft: Observable[str] = Observable("", name="empathy_draft")
        self.next_step_draft: Observable[str] = Observable("", name="next_step_draft")
        self.reformulated_text: Observable[str] = Observable("", name="reformulated_text")
        self.is_loading_empathy: Observable[bool] = Observable(False, name="is_loading_empathy")
        self.is_loading_reformulation: Observable[bool] = Observable(False, name="is_loading_reformulation")

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def sign_in(self, user_id: str) -> None:
        """Bind sync to the user; remote work continues in the background."""
        self.sync.bind(user_id)

    def sign_out(self) -> None:
        self.sync.unbind()

    async def refresh_plan(self) -> Plan:
        """Re-resolve the plan from the purchase store."""
        if self.entitlements is None:
            return self.quota.plan
        return await self.entitlements.refresh()

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    def _notify(self, kind: NoticeKind, message: str) -> None:
        display_s = self.success_display_s if kind == NoticeKind.SUCCESS else self.error_display_s
        self.bus.publish(Notice(kind=kind, message=message, display_s=display_s))

    def _on_quota_exceeded(self) -> None:
        self.paywall.present()
        self._notify(NoticeKind.PAYWALL, f"{Copy.QUOTA_EXCEEDED}（{self.quota.remaining_text()}）")

    def _notify_outcome(self, outcome: AIOutcome) -> None:
        if not outcome.notice:
            return
        kind = NoticeKind.REDUCED if outcome.source == OutcomeSource.BUDGET_FALLBACK else NoticeKind.ERROR
        self._notify(kind, outcome.notice)

    # ------------------------------------------------------------------
    # Writing aids
    # ------------------------------------------------------------------

    @property
    def is_draft_empty(self) -> bool:
        return not self.draft_text.strip()

    def new_prompt(self) -> str:
        self.current_prompt = random_prompt(self._rng)
        return self.current_prompt

    def insert_example(self) -> bool:
        """Fill an empty draft with an example sentence for the selected mood."""
        if not self.is_draft_empty:
            return False
        sample = example_sentence(self.selected_mood, self._rng)
        if sample is None:
            return False
        self.draft_text = sample
        return True

    # ------------------------------------------------------------------
    # AI features
    # ------------------------------------------------------------------

    async def build_empathy_draft(self, force_refresh: bool = False) -> AIOutcome[EmpathyResult] | None:
        """
        Fill the empathy and next-step drafts.

        The local rule result is shown immediately and replaced by the AI
        result when it arrives.
        """
        trimmed = self.draft_text.strip()
        if not trimmed:
            self._notify(NoticeKind.ERROR, Copy.EMPTY_DRAFT)
            return None

        empathy, next_step = rewrite_empathy(trimmed, self.selected_mood)
        self.empathy_draft.set(empathy)
        self.next_step_draft.set(next_step)

        if self.coordinator.is_busy:
            self._notify(NoticeKind.INFO, Copy.BUSY)
            return None

        self.is_loading_empathy.set(True)
        try:
            outcome = await self.coordinator.request_empathy(trimmed, self.selected_mood, force_refresh=force_refresh)
        except RequestInFlightError:
            self._notify(NoticeKind.INFO, Copy.BUSY)
            return None
        except QuotaExceededError:
            self._on_quota_exceeded()
            return None
        except StaleResponseError:
            logger.debug("Empathy result discarded: request was superseded")
            return None
        except EmptyInputError:
            self._notify(NoticeKind.ERROR, Copy.EMPTY_DRAFT)
            return None
        finally:
            self.is_loading_empathy.set(False)

        self.empathy_draft.set(outcome.value.empathy)
        self.next_step_draft.set(outcome.value.next_step)
        self._notify_outcome(outcome)
        return outcome

    async def reformulate_text(self) -> AIOutcome[str] | None:
        """Reformulate the draft using the current reformulation context."""
        trimmed = self.draft_text.strip()
        if not trimmed:
            self._notify(NoticeKind.ERROR, Copy.EMPTY_DRAFT)
            return None

        if self.coordinator.is_busy:
            self._notify(NoticeKind.INFO, Copy.BUSY)
            return None

        self.is_loading_reformulation.set(True)
        try:
            outcome = await self.coordinator.reformulate(trimmed, self.reformulation_context)
        except RequestInFlightError:
            self._notify(NoticeKind.INFO, Copy.BUSY)
            return None
        except QuotaExceededError:
            self._on_quota_exceeded()
            return None
        except StaleResponseError:
            logger.debug("Reformulation discarded: request was superseded")
            return None
        except EmptyInputError:
            self._notify(NoticeKind.ERROR, Copy.EMPTY_DRAFT)
            return None
        finally:
            self.is_loading_reformulation.set(False)

        self.reformulated_text.set(outcome.value)
        self._notify_outcome(outcome)
        return outcome

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    @property
    def entries(self) -> list[Entry]:
        return self.sync.entries.value

    @property
    def recent_entries(self) -> list[Entry]:
        return self.entries[: self.recent_count]

    @property
    def trend_snapshot(self) -> TrendSnapshot:
        return summarize(self.entries, window=self.trend_window, tz=self.tz)

    @property
    def remaining_quota_text(self) -> str:
        return self.quota.remaining_text()

    def save_current_entry(self, now: datetime | None = None) -> Entry | None:
        """
        Save the draft as a new entry and reset the draft.

        Missing empathy or next-step text is filled in by the local rules.
        Any AI request still running for the old draft is invalidated.
        """
        trimmed = self.draft_text.strip()
        if not trimmed:
            self._notify(NoticeKind.ERROR, Copy.EMPTY_DRAFT)
            return None

        empathy = self.empathy_draft.value
        next_step = self.next_step_draft.value
        if not empathy or not next_step:
            empathy, next_step = rewrite_empathy(trimmed, self.selected_mood)

        kwargs = {"date": now} if now else {}
        entry = Entry(
            mood=self.selected_mood,
            original_text=trimmed,
            reformulated_text=self.reformulated_text.value or None,
            empathy_text=empathy,
            next_step=next_step,
            **kwargs,
        )
        self.sync.save(entry)
        logger.info("Saved entry {} (mood {})", entry.id, entry.mood.name)

        self._reset_draft()
        self._notify(NoticeKind.SUCCESS, Copy.SAVE_SUCCESS)
        return entry

    def _reset_draft(self) -> None:
        for kind in RequestKind:
            self.coordinator.invalidate(kind)
        self.draft_text = ""
        self.selected_mood = Mood.NEUTRAL
        self.empathy_draft.set("")
        self.next_step_draft.set("")
        self.reformulated_text.set("")
        self.new_prompt()

    def update_entry(
        self,
        entry_id: UUID,
        text: str | None = None,
        mood: Mood | None = None,
    ) -> Entry | None:
        """Replace an entry with an edited copy (new updated_at)."""
        entry = self.sync.get(entry_id)
        if entry is None:
            return None
        changes: dict = {}
        if text is not None:
            if not text.strip():
                self._notify(NoticeKind.ERROR, Copy.EMPTY_DRAFT)
                return None
            changes["original_text"] = text.strip()
        if mood is not None:
            changes["mood"] = mood
        if not changes:
            return entry
        revised = entry.revised(**changes)
        self.sync.save(revised)
        return revised

    def delete(self, entry_ids: Iterable[UUID]) -> None:
        self.sync.delete(entry_ids)

    def delete_at(self, offsets: Iterable[int]) -> None:
        """Delete entries by their position in the current list."""
        entries = self.entries
        self.sync.delete([entries[i].id for i in offsets if 0 <= i < len(entries)])

    def move(self, offsets: Iterable[int], destination: int) -> None:
        self.sync.reorder(offsets, destination)

    def delete_all(self) -> None:
        self.sync.delete_all()
        self._notify(NoticeKind.SUCCESS, Copy.DELETE_ALL_SUCCESS)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_json(self) -> str | None:
        return export_json(self.entries)

    def export_markdown(self, directory: Path) -> list[Path]:
        return export_markdown(self.entries, directory, tz=self.tz)
