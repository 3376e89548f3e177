"""Offline-first sync between the local cache and the remote store."""

from gokigen.sync.engine import SyncEngine, merge
from gokigen.sync.network import NetworkMonitor
from gokigen.sync.remote import RemotePage, RemoteStore

__all__ = ["SyncEngine", "merge", "NetworkMonitor", "RemotePage", "RemoteStore"]
