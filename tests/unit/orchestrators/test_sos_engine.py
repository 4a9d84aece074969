"""
SOS 트랜잭션 엔진 단위 테스트

이 모듈은 단계별 영속화, 대체 위치, 부가 단계 실패, 동시 실행 거부,
중지, 재시작 복구를 검증합니다.
"""

import asyncio
import pytest
from sentinelnet.adapters.storage.records import SOS_STATE_KEY
from sentinelnet.core.errors import LocationUnavailableError, SOSAlreadyActiveError
from sentinelnet.core.models import SOSPhase, SOSState
from sentinelnet.orchestrators import AdaptiveLocationTracker, SOSTransactionEngine
from conftest import FakeLocationSource, make_fix


def phases(states):
    return [s.phase for s in states]


class TestExecuteSOSFlow:
    """SOS 흐름 실행 테스트"""

    @pytest.mark.asyncio
    async def test_happy_path_reaches_streaming(self, sos_engine, notifier, caller, tracker):
        transitions, completed = [], []
        state = await sos_engine.execute_sos_flow(
            on_state_change=transitions.append,
            on_complete=completed.append,
        )

        assert state.phase == SOSPhase.STREAMING
        assert state.location.latitude == 12.9716
        assert state.sms_dispatched and state.call_initiated and state.streaming_active
        assert state.sms.succeeded and state.call.succeeded
        assert phases(transitions) == [
            SOSPhase.GPS_CAPTURING, SOSPhase.GPS_CAPTURED,
            SOSPhase.SMS_DISPATCHING, SOSPhase.SMS_DISPATCHED,
            SOSPhase.CALL_INITIATING, SOSPhase.CALL_INITIATING,
            SOSPhase.STREAMING,
        ]
        assert completed == [state]
        caller.initiate.assert_awaited_once_with("112")
        assert tracker.context.sos_active is True

    @pytest.mark.asyncio
    async def test_sms_payload_carries_location(self, sos_engine, notifier):
        await sos_engine.execute_sos_flow()
        payload = notifier.send.await_args.args[0]
        assert payload["type"] == "SOS"
        assert "12.971600,77.594600" in payload["message"]
        assert payload["location"]["accuracy"] == 10.0

    @pytest.mark.asyncio
    async def test_every_transition_is_persisted(self, sos_engine, store):
        await sos_engine.execute_sos_flow()
        saved = [SOSState.model_validate_json(v) for v in store.writes_for(SOS_STATE_KEY)]
        assert len(saved) >= 5
        assert saved[-1].phase == SOSPhase.STREAMING
        # 지속된 마지막 상태가 메모리 상태와 같음
        assert saved[-1] == sos_engine.state

    @pytest.mark.asyncio
    async def test_gps_failure_uses_last_known(self, history, severity_controller, records,
                                               notifier, caller, clock, store):
        await history.append(make_fix(latitude=1.25, longitude=2.5))
        source = FakeLocationSource(once_error=LocationUnavailableError("timeout"))
        tracker = AdaptiveLocationTracker(source, history, clock=clock)
        engine = SOSTransactionEngine(tracker, severity_controller, records, notifier, caller,
                                      sms_backoff_sec=0.0, clock=clock)

        state = await engine.execute_sos_flow()

        assert state.phase == SOSPhase.STREAMING
        assert (state.location.latitude, state.location.longitude) == (1.25, 2.5)
        assert len(store.writes_for(SOS_STATE_KEY)) >= 5

    @pytest.mark.asyncio
    async def test_no_location_at_all_fails(self, history, severity_controller, records,
                                            notifier, caller, clock):
        source = FakeLocationSource(once_error=LocationUnavailableError("timeout"))
        tracker = AdaptiveLocationTracker(source, history, clock=clock)
        engine = SOSTransactionEngine(tracker, severity_controller, records, notifier, caller,
                                      sms_backoff_sec=0.0, clock=clock)
        errors = []

        state = await engine.execute_sos_flow(on_error=errors.append)

        assert state.phase == SOSPhase.FAILED
        assert state.error == "GPS unavailable and no fallback location"
        assert errors == ["GPS unavailable and no fallback location"]
        notifier.send.assert_not_awaited()
        caller.initiate.assert_not_awaited()
        assert (await records.load()).phase == SOSPhase.FAILED
        assert not engine.is_active

    @pytest.mark.asyncio
    async def test_sms_failure_does_not_block(self, sos_engine, notifier):
        notifier.send.return_value = False
        errors = []

        state = await sos_engine.execute_sos_flow(on_error=errors.append)

        assert state.phase == SOSPhase.STREAMING
        assert state.sms_dispatched is False
        assert state.sms.attempted and not state.sms.succeeded
        assert state.sms.error
        assert state.call_initiated is True
        assert errors == ["SMS dispatch failed, continuing flow"]
        # 최초 시도 + 재시도 2회
        assert notifier.send.await_count == 3

    @pytest.mark.asyncio
    async def test_sms_exception_is_recorded(self, sos_engine, notifier):
        notifier.send.side_effect = ConnectionError("network down")
        state = await sos_engine.execute_sos_flow()
        assert state.phase == SOSPhase.STREAMING
        assert state.sms.error == "network down"

    @pytest.mark.asyncio
    async def test_sms_recovers_on_retry(self, sos_engine, notifier):
        notifier.send.side_effect = [ConnectionError("flaky"), True]
        state = await sos_engine.execute_sos_flow()
        assert state.sms_dispatched is True
        assert notifier.send.await_count == 2

    @pytest.mark.asyncio
    async def test_hanging_sms_is_bounded(self, sos_engine, notifier, caller):
        async def hang(payload):
            await asyncio.Event().wait()

        notifier.send.side_effect = hang
        sos_engine.sms_timeout_sec = 0.05
        errors = []

        state = await asyncio.wait_for(sos_engine.execute_sos_flow(on_error=errors.append), timeout=2)

        assert state.phase == SOSPhase.STREAMING
        assert state.sms_dispatched is False
        assert state.sms.error == "sms dispatch timed out"
        caller.initiate.assert_awaited_once()
        assert errors == ["SMS dispatch failed, continuing flow"]

    @pytest.mark.asyncio
    async def test_call_failure_does_not_block(self, sos_engine, caller):
        caller.initiate.side_effect = RuntimeError("dialer unavailable")
        state = await sos_engine.execute_sos_flow()
        assert state.phase == SOSPhase.STREAMING
        assert state.call_initiated is False
        assert state.call.error == "dialer unavailable"

    @pytest.mark.asyncio
    async def test_callback_errors_are_swallowed(self, sos_engine):
        def boom(_):
            raise RuntimeError("ui crashed")

        state = await sos_engine.execute_sos_flow(on_state_change=boom, on_complete=boom)
        assert state.phase == SOSPhase.STREAMING


class TestConcurrencyPolicy:
    """동시 실행 거부 테스트"""

    @pytest.mark.asyncio
    async def test_second_start_while_streaming_is_rejected(self, sos_engine):
        await sos_engine.execute_sos_flow()
        with pytest.raises(SOSAlreadyActiveError):
            await sos_engine.execute_sos_flow()

    @pytest.mark.asyncio
    async def test_second_start_while_in_progress_is_rejected(self, history, severity_controller,
                                                              records, notifier, caller, clock):
        source = FakeLocationSource(once=make_fix(), once_delay=0.05)
        tracker = AdaptiveLocationTracker(source, history, clock=clock)
        engine = SOSTransactionEngine(tracker, severity_controller, records, notifier, caller,
                                      sms_backoff_sec=0.0, clock=clock)

        first = asyncio.create_task(engine.execute_sos_flow())
        await asyncio.sleep(0.01)
        with pytest.raises(SOSAlreadyActiveError):
            await engine.execute_sos_flow()
        assert (await first).phase == SOSPhase.STREAMING

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, sos_engine, notifier):
        await sos_engine.execute_sos_flow()
        await sos_engine.stop()
        state = await sos_engine.execute_sos_flow()
        assert state.phase == SOSPhase.STREAMING
        assert notifier.send.await_count == 2

    @pytest.mark.asyncio
    async def test_restart_after_failure(self, history, severity_controller, records,
                                         notifier, caller, clock):
        source = FakeLocationSource(once_error=LocationUnavailableError("timeout"))
        tracker = AdaptiveLocationTracker(source, history, clock=clock)
        engine = SOSTransactionEngine(tracker, severity_controller, records, notifier, caller,
                                      sms_backoff_sec=0.0, clock=clock)
        assert (await engine.execute_sos_flow()).phase == SOSPhase.FAILED

        source.once_error = None
        source.once = make_fix()
        assert (await engine.execute_sos_flow()).phase == SOSPhase.STREAMING


class TestStop:
    """중지 테스트"""

    @pytest.mark.asyncio
    async def test_stop_from_idle_is_safe(self, sos_engine, effects):
        first = await sos_engine.stop()
        second = await sos_engine.stop()
        assert first.phase == SOSPhase.IDLE
        assert second.phase == SOSPhase.IDLE
        assert effects.vibrate_stop.call_count == 2

    @pytest.mark.asyncio
    async def test_stop_clears_record_and_context(self, sos_engine, store, tracker, effects):
        await sos_engine.execute_sos_flow()
        state = await sos_engine.stop()
        assert state.phase == SOSPhase.IDLE
        assert SOS_STATE_KEY not in store.keys()
        assert tracker.context.sos_active is False
        effects.stop_audio.assert_called()
        assert not sos_engine.is_active

    @pytest.mark.asyncio
    async def test_stop_mid_flow_leaves_no_record(self, history, severity_controller, records,
                                                  notifier, caller, clock, store):
        source = FakeLocationSource(once=make_fix(), once_delay=0.05)
        tracker = AdaptiveLocationTracker(source, history, clock=clock)
        engine = SOSTransactionEngine(tracker, severity_controller, records, notifier, caller,
                                      sms_backoff_sec=0.0, clock=clock)

        flow = asyncio.create_task(engine.execute_sos_flow())
        await asyncio.sleep(0.01)
        assert engine.state.phase == SOSPhase.GPS_CAPTURING

        await engine.stop()
        result = await flow

        assert result.phase == SOSPhase.IDLE
        assert engine.state.phase == SOSPhase.IDLE
        assert SOS_STATE_KEY not in store.keys()
        notifier.send.assert_not_awaited()
        caller.initiate.assert_not_awaited()


class TestRecovery:
    """재시작 복구 테스트"""

    @pytest.mark.asyncio
    async def test_expired_state_is_cleared(self, sos_engine, records, store, clock):
        await records.save(SOSState(phase=SOSPhase.SMS_DISPATCHING, location=make_fix(),
                                    last_updated=clock.now - 31 * 60 * 1000))
        assert await sos_engine.recover() is None
        assert SOS_STATE_KEY not in store.keys()
        assert sos_engine.state.phase == SOSPhase.IDLE

    @pytest.mark.asyncio
    async def test_recent_state_is_restored_unchanged(self, sos_engine, records, clock):
        saved = SOSState(phase=SOSPhase.SMS_DISPATCHED, location=make_fix(),
                         sms_dispatched=True, last_updated=clock.now - 60 * 1000)
        await records.save(saved)

        recovered = await sos_engine.recover()

        assert recovered == saved
        assert sos_engine.state == saved
        assert sos_engine.is_active

    @pytest.mark.asyncio
    async def test_nothing_to_recover(self, sos_engine):
        assert await sos_engine.recover() is None

    @pytest.mark.asyncio
    async def test_corrupted_record_is_ignored(self, sos_engine, store):
        await store.set(SOS_STATE_KEY, b"{not json")
        assert await sos_engine.recover() is None

    @pytest.mark.asyncio
    async def test_resume_continues_from_recorded_step(self, sos_engine, records, notifier,
                                                       caller, clock):
        await records.save(SOSState(phase=SOSPhase.SMS_DISPATCHED, location=make_fix(),
                                    sms_dispatched=True, last_updated=clock.now - 60 * 1000))
        await sos_engine.recover()

        state = await sos_engine.resume()

        assert state.phase == SOSPhase.STREAMING
        assert state.sms_dispatched is True
        notifier.send.assert_not_awaited()
        caller.initiate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resume_without_location_recaptures(self, sos_engine, records, notifier, clock):
        await records.save(SOSState(phase=SOSPhase.GPS_CAPTURING, last_updated=clock.now))
        await sos_engine.recover()

        state = await sos_engine.resume()

        assert state.phase == SOSPhase.STREAMING
        assert state.location is not None
        notifier.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resume_with_nothing_active(self, sos_engine):
        assert await sos_engine.resume() is None
