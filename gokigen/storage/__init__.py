"""Local persistence: key-value store, per-user entry cache and outbox."""

from gokigen.storage.kv import KeyValueStore, PeriodCounter
from gokigen.storage.local import LocalStore

__all__ = ["KeyValueStore", "PeriodCounter", "LocalStore"]
