"""
In-memory key-value store for SentinelNet.

This module implements a process-local KVStorePort, used for
tests and for running without durable storage.
"""

from typing import Dict, Optional


class InMemoryKVStore:
    """메모리 기반 키-값 저장소"""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    async def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())
