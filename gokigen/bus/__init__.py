"""Notice bus and observable state for decoupled core-UI communication."""

from gokigen.bus.events import Notice, NoticeKind
from gokigen.bus.observable import Observable
from gokigen.bus.queue import MessageBus

__all__ = ["MessageBus", "Notice", "NoticeKind", "Observable"]
