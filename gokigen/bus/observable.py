"""Framework-independent observable values."""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

Subscriber = Callable[[T], None]


class Observable(Generic[T]):
    """
    A value that notifies subscribers when it changes.

    Subscribers are called synchronously, in subscription order, on the
    thread or event loop that calls set(). A failing subscriber is logged
    and does not prevent the others from running.
    """

    def __init__(self, value: T, name: str = "value"):
        self._value = value
        self.name = name
        self._subscribers: list[Subscriber[T]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T, *, force: bool = False) -> None:
        """Replace the value, notifying subscribers if it changed (or force)."""
        if not force and value == self._value:
            return
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                logger.warning("Subscriber of {} failed: {}", self.name, e)

    def subscribe(self, callback: Subscriber[T]) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe
