"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import pytest
import asyncio
import tempfile
import os
from typing import List, Optional, Tuple
from unittest.mock import AsyncMock, Mock
from sentinelnet.settings import Settings
from sentinelnet.adapters.storage import InMemoryKVStore, LocationHistoryRecord, SOSStateRecord
from sentinelnet.core.errors import LocationUnavailableError
from sentinelnet.core.models import LocationFix, WatchOptions
from sentinelnet.orchestrators import (
    AdaptiveLocationTracker, AlertDecisionEngine, SeverityController, SOSTransactionEngine,
)

# 고정 기준 시각 (epoch ms)
NOW_MS = 1_700_000_000_000

# 적도에서 위도 1도의 거리 (미터)
METERS_PER_DEGREE = 111194.92664455873


class FrozenClock:
    """테스트용 고정 시계"""

    def __init__(self, now: int = NOW_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingKVStore(InMemoryKVStore):
    """쓰기 기록을 남기는 메모리 저장소"""

    def __init__(self):
        super().__init__()
        self.writes: List[Tuple[str, bytes]] = []

    async def set(self, key: str, value: bytes) -> None:
        self.writes.append((key, bytes(value)))
        await super().set(key, value)

    def writes_for(self, key: str) -> List[bytes]:
        return [v for k, v in self.writes if k == key]


class FakeLocationSource:
    """테스트용 위치 소스

    watch()는 준비된 항목을 모두 내보낸 뒤 구독 해제 전까지 대기합니다.
    """

    def __init__(self, items=None, *, once: Optional[LocationFix] = None,
                 once_error: Optional[Exception] = None, once_delay: float = 0.0):
        self.items = list(items or [])
        self.once = once
        self.once_error = once_error
        self.once_delay = once_delay
        self.watch_calls: List[WatchOptions] = []
        self.unsubscribed = 0

    async def get_once(self, options: WatchOptions) -> LocationFix:
        if self.once_delay:
            await asyncio.sleep(self.once_delay)
        if self.once_error is not None:
            raise self.once_error
        if self.once is None:
            raise LocationUnavailableError("no fix")
        return self.once

    async def watch(self, options: WatchOptions):
        self.watch_calls.append(options)
        while self.items:
            yield self.items.pop(0)
        await asyncio.Event().wait()

    def unsubscribe(self) -> None:
        self.unsubscribed += 1


def make_fix(latitude: float = 12.9716, longitude: float = 77.5946,
             timestamp: Optional[int] = NOW_MS, accuracy: Optional[float] = 10.0) -> LocationFix:
    """테스트용 위치 생성"""
    return LocationFix(latitude=latitude, longitude=longitude,
                       timestamp=timestamp, accuracy=accuracy)


def make_alert(*, severity: str = "HIGH", latitude: float = 12.9716, longitude: float = 77.5946,
               radius: float = 1000.0, name: str = "Downtown", alert_id: str = "alert-1",
               alert_type: str = "FLOOD") -> dict:
    """테스트용 원시 경보 페이로드 생성"""
    return {
        "id": alert_id,
        "type": alert_type,
        "severity": severity,
        "zone": {
            "id": "zone-test",
            "name": name,
            "center": {"lat": latitude, "lng": longitude},
            "radius": radius,
        },
        "instructions": "Move to higher ground",
        "authorityId": "auth-1",
    }


async def drain(rounds: int = 20) -> None:
    """대기 중인 태스크가 진행되도록 이벤트 루프를 양보합니다."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def temp_db_path():
    """임시 데이터베이스 파일 경로"""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        temp_path = f.name
    yield temp_path
    # 테스트 후 파일 정리
    if os.path.exists(temp_path):
        os.unlink(temp_path)


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    settings.observability.http_port = 8080
    settings.storage.backend = "memory"
    return settings


@pytest.fixture
def clock():
    """고정 시계"""
    return FrozenClock()


@pytest.fixture
def store():
    """쓰기 기록 메모리 저장소"""
    return RecordingKVStore()


@pytest.fixture
def history(store):
    """위치 이력 레코드"""
    return LocationHistoryRecord(store)


@pytest.fixture
def records(store):
    """SOS 상태 레코드"""
    return SOSStateRecord(store)


@pytest.fixture
def effects():
    """테스트용 디바이스 효과"""
    return Mock()


@pytest.fixture
def severity_controller(effects):
    """심각도 컨트롤러"""
    return SeverityController(effects)


@pytest.fixture
def source():
    """테스트용 위치 소스"""
    return FakeLocationSource(once=make_fix())


@pytest.fixture
def tracker(source, history, clock):
    """적응형 위치 추적기"""
    return AdaptiveLocationTracker(source, history, clock=clock)


@pytest.fixture
def notifier():
    """테스트용 알림 발송기"""
    mock = Mock()
    mock.send = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def caller():
    """테스트용 통화 연결기"""
    mock = Mock()
    mock.initiate = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def decision_engine(severity_controller, clock):
    """경보 결정 엔진"""
    return AlertDecisionEngine(severity_controller, clock=clock)


@pytest.fixture
def sos_engine(tracker, severity_controller, records, notifier, caller, clock):
    """SOS 트랜잭션 엔진"""
    return SOSTransactionEngine(
        tracker, severity_controller, records, notifier, caller,
        sms_backoff_sec=0.0,
        clock=clock,
    )
