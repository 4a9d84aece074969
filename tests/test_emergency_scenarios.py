"""
긴급 대응 시나리오 테스트

이 모듈은 영속 저장소를 포함한 전체 흐름과 재시작 복구를 검증합니다.
"""

import pytest
from unittest.mock import AsyncMock, Mock
from sentinelnet.adapters import LocationHistoryRecord, SOSStateRecord, SQLiteKVStore
from sentinelnet.core.errors import LocationUnavailableError
from sentinelnet.core.models import DecisionCode, SOSPhase
from sentinelnet.orchestrators import (
    AdaptiveLocationTracker, AlertDecisionEngine, EmergencySession, SeverityController,
    SOSTransactionEngine,
)
from conftest import FakeLocationSource, FrozenClock, make_alert, make_fix


def build(db_path, clock, source=None):
    """같은 데이터베이스를 쓰는 엔진 묶음을 조립합니다 (프로세스 재시작 모사)."""
    store = SQLiteKVStore(db_path)
    effects = Mock()
    severity = SeverityController(effects)
    tracker = AdaptiveLocationTracker(source or FakeLocationSource(once=make_fix()),
                                      LocationHistoryRecord(store), clock=clock)
    notifier = Mock(send=AsyncMock(return_value=True))
    caller = Mock(initiate=AsyncMock())
    sos = SOSTransactionEngine(tracker, severity, SOSStateRecord(store), notifier, caller,
                               sms_backoff_sec=0.0, clock=clock)
    return sos, tracker, notifier, effects


class TestSOSRestart:
    """SOS 재시작 복구 시나리오"""

    @pytest.mark.asyncio
    async def test_streaming_sos_survives_restart(self, temp_db_path):
        clock = FrozenClock()
        sos, _, _, _ = build(temp_db_path, clock)
        before = await sos.execute_sos_flow()

        clock.advance(60 * 1000)
        restarted, _, _, _ = build(temp_db_path, clock)
        recovered = await restarted.recover()

        assert recovered == before
        assert restarted.is_active

    @pytest.mark.asyncio
    async def test_stale_sos_is_discarded_after_restart(self, temp_db_path):
        clock = FrozenClock()
        sos, _, _, _ = build(temp_db_path, clock)
        await sos.execute_sos_flow()

        clock.advance(31 * 60 * 1000)
        restarted, _, _, _ = build(temp_db_path, clock)

        assert await restarted.recover() is None
        assert await SOSStateRecord(SQLiteKVStore(temp_db_path)).load() is None

    @pytest.mark.asyncio
    async def test_fallback_location_from_previous_run(self, temp_db_path):
        clock = FrozenClock()
        _, tracker, _, _ = build(temp_db_path, clock)
        await tracker.capture_fix()

        offline = FakeLocationSource(once_error=LocationUnavailableError("no signal"))
        sos, _, notifier, _ = build(temp_db_path, clock, source=offline)
        state = await sos.execute_sos_flow()

        assert state.phase == SOSPhase.STREAMING
        assert state.location == make_fix()
        notifier.send.assert_awaited_once()


class TestAlertToResponse:
    """경보 수신부터 디바이스 응답까지"""

    def test_high_alert_inside_zone_triggers_alarm(self, tracker, sos_engine):
        effects = Mock()
        engine = AlertDecisionEngine(SeverityController(effects))
        session = EmergencySession(Mock(), engine, tracker, sos_engine,
                                   location_provider=lambda: make_fix(timestamp=None))

        decision = session.handle_alert(make_alert(severity="HIGH"))

        # 타임스탬프 없는 위치는 오래된 위치로 간주되어 보수적으로 판정
        assert decision.code == DecisionCode.TRIGGER
        assert decision.zone_match.confidence == 0.7
        effects.play_alarm_loop.assert_called_once()

        session.dismiss_alert("alert-1")
        effects.stop_audio.assert_called_once()
