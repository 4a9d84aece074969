"""
Storage adapters for SentinelNet hexagonal architecture.

This module contains key-value store adapters and the typed records
for SOS state and location history built on top of them.
"""

from .memory_kv import InMemoryKVStore
from .sqlite_kv import SQLiteKVStore
from .records import LocationHistoryRecord, SOSStateRecord

__all__ = ["InMemoryKVStore", "SQLiteKVStore", "LocationHistoryRecord", "SOSStateRecord"]
