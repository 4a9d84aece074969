"""
Typed persistence records for SentinelNet.

This module maps SOSState and LocationHistory onto a KVStorePort.
Persistence failures are logged and counted but never propagate:
in-memory operation continues, only restart recovery degrades.
"""

import asyncio
import json
from typing import List, Optional
from pydantic import ValidationError
from sentinelnet.core.models import LocationFix, SOSState
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger
from sentinelnet.ports.kvstore import KVStorePort

log = get_logger("sentinelnet.records")

SOS_STATE_KEY = "sentinelnet_sos_state"
LOCATION_HISTORY_KEY = "sentinelnet_location_history"

# 위치 이력 최대 길이
HISTORY_CAP = 50


class SOSStateRecord:
    """SOS 상태 영속 레코드"""

    def __init__(self, store: KVStorePort, key: str = SOS_STATE_KEY):
        self.store = store
        self.key = key

    async def load(self) -> Optional[SOSState]:
        """
        저장된 SOS 상태를 읽습니다.

        Returns:
            SOS 상태 또는 없거나 손상된 경우 None
        """
        try:
            raw = await self.store.get(self.key)
        except Exception as e:
            metrics.persistence_errors.labels(operation="sos_load").inc()
            log.error(f"SOS 상태 읽기 실패: {e}")
            return None

        if raw is None:
            return None

        try:
            return SOSState.model_validate_json(raw)
        except ValidationError as e:
            log.warning(f"손상된 SOS 상태 레코드 무시: {e.error_count()}개 오류")
            return None

    async def save(self, state: SOSState) -> bool:
        """
        SOS 상태를 저장합니다.

        Returns:
            저장 성공 여부
        """
        try:
            await self.store.set(self.key, state.model_dump_json().encode("utf-8"))
            return True
        except Exception as e:
            metrics.persistence_errors.labels(operation="sos_save").inc()
            log.error("SOS 상태 저장 실패", error=str(e), phase=state.phase.value)
            return False

    async def clear(self) -> bool:
        """SOS 상태를 삭제합니다."""
        try:
            await self.store.remove(self.key)
            return True
        except Exception as e:
            metrics.persistence_errors.labels(operation="sos_clear").inc()
            log.error(f"SOS 상태 삭제 실패: {e}")
            return False


class LocationHistoryRecord:
    """위치 이력 영속 레코드 (FIFO, 최대 cap개)"""

    def __init__(self, store: KVStorePort, *, cap: int = HISTORY_CAP, key: str = LOCATION_HISTORY_KEY):
        self.store = store
        self.cap = cap
        self.key = key
        # load-append-save 구간 직렬화
        self._lock = asyncio.Lock()

    async def load(self) -> List[LocationFix]:
        """
        위치 이력을 읽습니다.

        Returns:
            도착 순서대로 정렬된 위치 목록
        """
        try:
            raw = await self.store.get(self.key)
        except Exception as e:
            metrics.persistence_errors.labels(operation="history_load").inc()
            log.error(f"위치 이력 읽기 실패: {e}")
            return []

        if raw is None:
            return []

        try:
            items = json.loads(raw)
            return [LocationFix.model_validate(item) for item in items]
        except (ValueError, TypeError) as e:
            log.warning(f"손상된 위치 이력 무시: {e}")
            return []

    async def append(self, fix: LocationFix) -> List[LocationFix]:
        """
        위치를 이력에 추가하고 초과분은 오래된 것부터 제거합니다.

        Args:
            fix: 추가할 위치

        Returns:
            갱신된 이력
        """
        async with self._lock:
            history = await self.load()
            history.append(fix)
            history = history[-self.cap:]

            payload = json.dumps([item.model_dump() for item in history])
            try:
                await self.store.set(self.key, payload.encode("utf-8"))
            except Exception as e:
                metrics.persistence_errors.labels(operation="history_save").inc()
                log.error(f"위치 이력 저장 실패: {e}")
            return history

    async def last_known(self) -> Optional[LocationFix]:
        """마지막으로 알려진 위치를 반환합니다."""
        history = await self.load()
        return history[-1] if history else None

    async def clear(self) -> None:
        """위치 이력을 삭제합니다."""
        async with self._lock:
            try:
                await self.store.remove(self.key)
            except Exception as e:
                metrics.persistence_errors.labels(operation="history_clear").inc()
                log.error(f"위치 이력 삭제 실패: {e}")
