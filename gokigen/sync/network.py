"""Connectivity state used to trigger outbox drains."""

from __future__ import annotations

from typing import Callable

from loguru import logger

from gokigen.bus.observable import Observable


class NetworkMonitor:
    """
    Observable online/offline flag.

    Platform code reports reachability through set_online(); interested
    parties register with on_reconnect() to run when the device comes
    back online.
    """

    def __init__(self, online: bool = True):
        self.is_online: Observable[bool] = Observable(online, name="is_online")
        self._was_online = online
        self.is_online.subscribe(self._on_change)
        self._reconnect_callbacks: list[Callable[[], None]] = []

    @property
    def online(self) -> bool:
        return self.is_online.value

    def set_online(self, online: bool) -> None:
        self.is_online.set(online)

    def on_reconnect(self, callback: Callable[[], None]) -> None:
        """Register a callback for offline -> online transitions."""
        self._reconnect_callbacks.append(callback)

    def _on_change(self, online: bool) -> None:
        was_online, self._was_online = self._was_online, online
        if online and not was_online:
            logger.info("Network is back online")
            for callback in list(self._reconnect_callbacks):
                try:
                    callback()
                except Exception as e:
                    logger.warning("Reconnect callback failed: {}", e)
        elif not online:
            logger.info("Network went offline")
