"""App-wide paywall presentation state."""

from __future__ import annotations

import time
from typing import Callable

from loguru import logger

from gokigen.bus.observable import Observable


class PaywallCoordinator:
    """
    Owns the single paywall sheet.

    present() may be called from anywhere; it shows the paywall at most once
    at a time and ignores calls within the throttle window of the previous
    presentation.
    """

    def __init__(self, throttle_s: float = 0.8, clock: Callable[[], float] = time.monotonic):
        self.throttle_s = throttle_s
        self.is_presented: Observable[bool] = Observable(False, name="paywall")
        self.present_count = 0
        self._clock = clock
        self._last_presented_at: float | None = None

    def present(self, throttle_s: float | None = None) -> bool:
        """Show the paywall. Returns True if this call presented it."""
        if self.is_presented.value:
            return False
        throttle = self.throttle_s if throttle_s is None else throttle_s
        now = self._clock()
        if self._last_presented_at is not None and now - self._last_presented_at < throttle:
            logger.debug("Paywall presentation throttled")
            return False
        self._last_presented_at = now
        self.present_count += 1
        self.is_presented.set(True)
        return True

    def dismiss(self) -> None:
        self.is_presented.set(False)
