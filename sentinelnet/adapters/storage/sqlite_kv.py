"""
SQLite-based key-value store for SentinelNet.

This module implements a durable KVStorePort on SQLite so that
SOS state and location history survive process restarts.
"""

import asyncio
import time
from typing import Optional
import aiosqlite
from sentinelnet.core.errors import PersistenceError
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.kv")

# SQLite 스키마
SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    k TEXT PRIMARY KEY,
    v BLOB NOT NULL,
    updated_at INTEGER NOT NULL
);
"""

class SQLiteKVStore:
    """SQLite 기반 키-값 저장소"""

    def __init__(self, path: str):
        """
        초기화합니다.

        Args:
            path: SQLite 데이터베이스 파일 경로
        """
        self.path = path
        # 모든 연산을 직렬화하여 키별 쓰기 순서를 보장
        self._lock = asyncio.Lock()
        self._initialized = False
        log.info(f"SQLiteKVStore 초기화: {path}")

    async def init(self) -> None:
        """데이터베이스를 초기화합니다."""
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA)
            await db.commit()
        self._initialized = True
        log.info("SQLiteKVStore 스키마 초기화 완료")

    async def _ensure_init(self) -> None:
        if not self._initialized:
            await self.init()

    async def get(self, key: str) -> Optional[bytes]:
        """
        키로 값을 조회합니다.

        Args:
            key: 조회할 키

        Returns:
            값 또는 None

        Raises:
            PersistenceError: 데이터베이스 오류
        """
        async with self._lock:
            try:
                await self._ensure_init()
                async with aiosqlite.connect(self.path) as db:
                    cursor = await db.execute("SELECT v FROM kv WHERE k = ?", (key,))
                    row = await cursor.fetchone()
                    return bytes(row[0]) if row else None
            except aiosqlite.Error as e:
                raise PersistenceError(f"get {key} failed: {e}") from e

    async def set(self, key: str, value: bytes) -> None:
        """
        키-값을 저장합니다.

        Args:
            key: 저장할 키
            value: 저장할 값

        Raises:
            PersistenceError: 데이터베이스 오류
        """
        now = int(time.time())
        async with self._lock:
            try:
                await self._ensure_init()
                async with aiosqlite.connect(self.path) as db:
                    await db.execute(
                        "INSERT INTO kv (k, v, updated_at) VALUES (?, ?, ?) "
                        "ON CONFLICT(k) DO UPDATE SET v = excluded.v, updated_at = excluded.updated_at",
                        (key, value, now)
                    )
                    await db.commit()
            except aiosqlite.Error as e:
                raise PersistenceError(f"set {key} failed: {e}") from e

    async def remove(self, key: str) -> None:
        """
        키를 삭제합니다.

        Args:
            key: 삭제할 키

        Raises:
            PersistenceError: 데이터베이스 오류
        """
        async with self._lock:
            try:
                await self._ensure_init()
                async with aiosqlite.connect(self.path) as db:
                    await db.execute("DELETE FROM kv WHERE k = ?", (key,))
                    await db.commit()
            except aiosqlite.Error as e:
                raise PersistenceError(f"remove {key} failed: {e}") from e

    async def get_count(self) -> int:
        """
        현재 저장된 키 수를 반환합니다.

        Returns:
            키 수

        Raises:
            PersistenceError: 데이터베이스 오류
        """
        async with self._lock:
            try:
                await self._ensure_init()
                async with aiosqlite.connect(self.path) as db:
                    cursor = await db.execute("SELECT COUNT(*) FROM kv")
                    result = await cursor.fetchone()
                    return result[0] if result else 0
            except aiosqlite.Error as e:
                raise PersistenceError(f"count failed: {e}") from e
