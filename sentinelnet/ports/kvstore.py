"""
Key-value store port interface.

This module defines the protocol for durable key-value storage.
Writes for a given key are applied in the order they are awaited.
"""

from typing import Optional, Protocol


class KVStorePort(Protocol):
    """키-값 저장소 포트 인터페이스"""

    async def get(self, key: str) -> Optional[bytes]:
        """
        키로 값을 조회합니다.

        Args:
            key: 조회할 키

        Returns:
            값 또는 None
        """
        ...

    async def set(self, key: str, value: bytes) -> None:
        """
        키-값을 저장합니다.

        Args:
            key: 저장할 키
            value: 저장할 값
        """
        ...

    async def remove(self, key: str) -> None:
        """
        키를 삭제합니다. 없는 키는 무시합니다.

        Args:
            key: 삭제할 키
        """
        ...
