"""
Transactional SOS flow for SentinelNet.

    SOS tap -> capture GPS -> persist -> dispatch SMS -> initiate call -> stream

Each step is persisted independently and never rolled back: a later
failure does not undo an earlier recorded success. Delivery is
at-least-once; a duplicate SMS after a restart is acceptable, silent
loss of progress is not. The only hard failure is having no location
at all during capture.

Only one flow may be active per engine. A second start while one is in
progress or streaming raises SOSAlreadyActiveError; call stop() first.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional
from sentinelnet.adapters.storage.records import SOSStateRecord
from sentinelnet.common.clock import now_ms
from sentinelnet.common.retry import retry_with_backoff
from sentinelnet.core.errors import DispatchError, LocationUnavailableError, SOSAlreadyActiveError
from sentinelnet.core.models import LocationFix, SOSPhase, SOSState, StepOutcome
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger
from sentinelnet.orchestrators.location_tracker import AdaptiveLocationTracker
from sentinelnet.orchestrators.severity_controller import SeverityController
from sentinelnet.ports.dispatch import CallInitiatorPort, NotificationDispatcherPort

log = get_logger("sentinelnet.sos")

# SOS 상태 유효 시간 (30분)
VALIDITY_WINDOW_MS = 30 * 60 * 1000
GPS_TIMEOUT_MS = 10000
CALL_TIMEOUT_SEC = 5.0
SMS_TIMEOUT_SEC = 10.0

NO_LOCATION_ERROR = "GPS unavailable and no fallback location"

# 흐름 단계 순서
STEP_CAPTURE, STEP_SMS, STEP_CALL, STEP_STREAM = range(4)

INACTIVE_PHASES = (SOSPhase.IDLE, SOSPhase.FAILED, SOSPhase.COMPLETED)

StateCallback = Callable[[SOSState], Any]
ErrorCallback = Callable[[str], Any]


class _FlowAborted(Exception):
    """stop()으로 흐름이 무효화됨"""


class SOSTransactionEngine:
    """SOS 트랜잭션 엔진"""

    def __init__(self,
                 tracker: AdaptiveLocationTracker,
                 severity: SeverityController,
                 records: SOSStateRecord,
                 notifier: NotificationDispatcherPort,
                 caller: CallInitiatorPort,
                 *,
                 validity_window_ms: int = VALIDITY_WINDOW_MS,
                 gps_timeout_ms: int = GPS_TIMEOUT_MS,
                 emergency_target: str = "112",
                 sms_max_retries: int = 2,
                 sms_backoff_sec: float = 0.5,
                 sms_timeout_sec: float = SMS_TIMEOUT_SEC,
                 call_timeout_sec: float = CALL_TIMEOUT_SEC,
                 clock: Callable[[], int] = now_ms):
        """
        초기화합니다.

        Args:
            tracker: 적응형 위치 추적기
            severity: 심각도 컨트롤러 (중지 시 디바이스 효과 해제)
            records: SOS 상태 레코드 (이 엔진만 기록함)
            notifier: 알림(SMS) 발송 포트
            caller: 통화 연결 포트
            validity_window_ms: 복구 가능한 상태의 최대 나이 (ms)
            gps_timeout_ms: GPS 측위 대기 한도 (ms)
            emergency_target: 긴급 통화 대상 번호
            sms_max_retries: SMS 재시도 횟수
            sms_backoff_sec: SMS 재시도 기본 지연 (초)
            sms_timeout_sec: 재시도를 포함한 SMS 단계 전체 대기 한도 (초)
            call_timeout_sec: 통화 연결 대기 한도 (초)
            clock: 현재 시각(epoch ms) 제공 함수
        """
        self.tracker = tracker
        self.severity = severity
        self.records = records
        self.notifier = notifier
        self.caller = caller
        self.validity_window_ms = validity_window_ms
        self.gps_timeout_ms = gps_timeout_ms
        self.emergency_target = emergency_target
        self.sms_max_retries = sms_max_retries
        self.sms_backoff_sec = sms_backoff_sec
        self.sms_timeout_sec = sms_timeout_sec
        self.call_timeout_sec = call_timeout_sec
        self.clock = clock

        self._state = SOSState()
        self._generation = 0
        self._running = False
        self._on_state_change: Optional[StateCallback] = None

    @property
    def state(self) -> SOSState:
        """현재 SOS 상태 스냅샷"""
        return self._state

    @property
    def is_active(self) -> bool:
        return self._running or self._state.phase not in INACTIVE_PHASES

    async def execute_sos_flow(self,
                               on_state_change: Optional[StateCallback] = None,
                               on_error: Optional[ErrorCallback] = None,
                               on_complete: Optional[StateCallback] = None) -> SOSState:
        """
        SOS 흐름을 실행합니다.

        Args:
            on_state_change: 상태 전이마다 호출 (감사 로그용)
            on_error: 복구된 오류 및 치명적 오류 알림
            on_complete: STREAMING 도달 시 호출

        Returns:
            마지막 상태 (STREAMING, FAILED, 또는 중지된 경우 IDLE)

        Raises:
            SOSAlreadyActiveError: 이미 진행 중인 SOS가 있는 경우
        """
        if self.is_active:
            raise SOSAlreadyActiveError(
                f"SOS already active (phase={self._state.phase.value}); stop it first"
            )
        self._state = SOSState()
        return await self._run(STEP_CAPTURE, on_state_change, on_error, on_complete)

    async def resume(self,
                     on_state_change: Optional[StateCallback] = None,
                     on_error: Optional[ErrorCallback] = None,
                     on_complete: Optional[StateCallback] = None) -> Optional[SOSState]:
        """
        recover()로 복원한 SOS를 남은 단계부터 이어서 실행합니다.

        이미 기록된 성공은 다시 수행하지 않지만, 진행 중이던 단계는
        다시 수행될 수 있습니다 (최소 1회 전달).

        Returns:
            마지막 상태 또는 이어갈 SOS가 없으면 None
        """
        if self._running:
            raise SOSAlreadyActiveError("SOS flow is already running")
        if self._state.phase in INACTIVE_PHASES:
            return None

        start = self._resume_step(self._state)
        log.info("SOS 흐름 재개", phase=self._state.phase.value, step=start)
        return await self._run(start, on_state_change, on_error, on_complete)

    @staticmethod
    def _resume_step(state: SOSState) -> int:
        if state.location is None or state.phase == SOSPhase.GPS_CAPTURING:
            return STEP_CAPTURE
        if state.phase in (SOSPhase.GPS_CAPTURED, SOSPhase.SMS_DISPATCHING):
            return STEP_SMS
        if state.phase == SOSPhase.SMS_DISPATCHED:
            return STEP_CALL
        if state.phase == SOSPhase.CALL_INITIATING and not state.call_initiated:
            return STEP_CALL
        return STEP_STREAM

    async def _run(self, start: int,
                   on_state_change: Optional[StateCallback],
                   on_error: Optional[ErrorCallback],
                   on_complete: Optional[StateCallback]) -> SOSState:
        self._generation += 1
        generation = self._generation
        self._running = True
        self._on_state_change = on_state_change
        metrics.sos_active.set(1)

        try:
            if start <= STEP_CAPTURE:
                if not await self._capture(generation, on_error):
                    return self._state
            if start <= STEP_SMS:
                await self._dispatch_sms(generation, on_error)
            if start <= STEP_CALL:
                await self._initiate_call(generation)
            await self._start_streaming(generation)
        except _FlowAborted:
            log.info("중지된 SOS 흐름 종료", generation=generation)
            return SOSState(phase=SOSPhase.IDLE, last_updated=self.clock())
        finally:
            if generation == self._generation:
                self._running = False

        _notify(on_complete, self._state)
        return self._state

    async def _transition(self, generation: int, **updates) -> SOSState:
        """상태를 갱신하고 영속화한 뒤 콜백을 호출합니다."""
        if generation != self._generation:
            raise _FlowAborted()

        self._state = self._state.model_copy(update={**updates, "last_updated": self.clock()})
        await self.records.save(self._state)

        # 저장 중 stop()이 호출되었으면 저장소는 이미 비워짐
        if generation != self._generation:
            raise _FlowAborted()

        metrics.sos_transitions.labels(phase=self._state.phase.value).inc()
        log.info("SOS 상태 전이", phase=self._state.phase.value)
        _notify(self._on_state_change, self._state)
        return self._state

    async def _capture(self, generation: int, on_error: Optional[ErrorCallback]) -> bool:
        await self._transition(generation, phase=SOSPhase.GPS_CAPTURING)

        location: Optional[LocationFix]
        t0 = time.perf_counter()
        try:
            location = await self.tracker.capture_fix(self.gps_timeout_ms)
        except LocationUnavailableError as e:
            log.warning("GPS 측위 실패, 마지막 위치로 대체", error=str(e))
            location = await self.tracker.last_known()
        finally:
            metrics.gps_capture_seconds.observe(time.perf_counter() - t0)

        if location is None:
            await self._transition(generation, phase=SOSPhase.FAILED, error=NO_LOCATION_ERROR)
            metrics.sos_active.set(0)
            log.error("SOS 실패: " + NO_LOCATION_ERROR)
            _notify(on_error, NO_LOCATION_ERROR)
            return False

        await self._transition(generation, phase=SOSPhase.GPS_CAPTURED, location=location)
        return True

    def _sms_payload(self, location: LocationFix) -> Dict[str, Any]:
        accuracy = f" (±{location.accuracy:.0f}m)" if location.accuracy is not None else ""
        return {
            "type": "SOS",
            "message": (f"SOS: emergency assistance needed at "
                        f"{location.latitude:.6f},{location.longitude:.6f}{accuracy}"),
            "location": location.model_dump(),
            "timestamp": self.clock(),
        }

    async def _dispatch_sms(self, generation: int, on_error: Optional[ErrorCallback]) -> None:
        await self._transition(generation, phase=SOSPhase.SMS_DISPATCHING,
                               sms=StepOutcome(attempted=True))

        payload = self._sms_payload(self._state.location)

        async def _send() -> None:
            if not await self.notifier.send(payload):
                raise DispatchError("notification dispatcher reported failure")

        try:
            await asyncio.wait_for(
                retry_with_backoff(_send,
                                   max_retries=self.sms_max_retries,
                                   base_delay=self.sms_backoff_sec,
                                   max_delay=self.sms_backoff_sec * 4,
                                   operation="sos_sms"),
                timeout=self.sms_timeout_sec,
            )
            outcome = StepOutcome(attempted=True, succeeded=True)
        except asyncio.TimeoutError:
            metrics.sos_step_failures.labels(step="sms").inc()
            log.error("SMS 발송 시간 초과, 흐름 계속", timeout_sec=self.sms_timeout_sec)
            outcome = StepOutcome(attempted=True, succeeded=False, error="sms dispatch timed out")
        except Exception as e:
            # 발송 실패는 흐름을 막지 않음
            metrics.sos_step_failures.labels(step="sms").inc()
            log.error("SMS 발송 실패, 흐름 계속", error=str(e))
            outcome = StepOutcome(attempted=True, succeeded=False, error=str(e))

        await self._transition(generation, phase=SOSPhase.SMS_DISPATCHED,
                               sms=outcome, sms_dispatched=outcome.succeeded)
        if not outcome.succeeded:
            _notify(on_error, "SMS dispatch failed, continuing flow")

    async def _initiate_call(self, generation: int) -> None:
        await self._transition(generation, phase=SOSPhase.CALL_INITIATING,
                               call=StepOutcome(attempted=True))
        try:
            await asyncio.wait_for(self.caller.initiate(self.emergency_target),
                                   timeout=self.call_timeout_sec)
            outcome = StepOutcome(attempted=True, succeeded=True)
        except asyncio.TimeoutError:
            metrics.sos_step_failures.labels(step="call").inc()
            log.warning("통화 연결 시간 초과", target=self.emergency_target)
            outcome = StepOutcome(attempted=True, succeeded=False, error="call initiation timed out")
        except Exception as e:
            metrics.sos_step_failures.labels(step="call").inc()
            log.warning("통화 연결 실패", error=str(e), target=self.emergency_target)
            outcome = StepOutcome(attempted=True, succeeded=False, error=str(e))

        await self._transition(generation, call=outcome, call_initiated=outcome.succeeded)

    async def _start_streaming(self, generation: int) -> None:
        await self._transition(generation, phase=SOSPhase.STREAMING, streaming_active=True)
        await self.tracker.update_context(
            self.tracker.context.model_copy(update={"sos_active": True})
        )

    async def recover(self) -> Optional[SOSState]:
        """
        저장된 SOS 상태를 복원합니다.

        유효 시간(30분)이 지난 상태는 삭제하고 None을 반환합니다.

        Returns:
            복원된 상태 또는 None
        """
        state = await self.records.load()
        if state is None:
            return None

        age_ms = self.clock() - state.last_updated
        if age_ms > self.validity_window_ms:
            log.info("만료된 SOS 상태 삭제", phase=state.phase.value, age_ms=age_ms)
            await self.records.clear()
            return None

        if not self._running:
            self._state = state
        log.info("SOS 상태 복원됨", phase=state.phase.value, age_ms=age_ms)
        return state

    async def stop(self) -> SOSState:
        """
        SOS를 중지하고 저장된 상태를 삭제합니다. 어느 단계에서든 안전하며 여러 번 호출해도 됩니다.

        Returns:
            IDLE 상태
        """
        # 진행 중인 흐름은 다음 단계 경계에서 중단됨
        self._generation += 1
        self._running = False
        was_active = self._state.phase not in INACTIVE_PHASES
        self._state = SOSState(phase=SOSPhase.IDLE, last_updated=self.clock())

        await self.records.clear()
        self.severity.stop_responses()
        if self.tracker.context.sos_active:
            await self.tracker.update_context(
                self.tracker.context.model_copy(update={"sos_active": False})
            )
        metrics.sos_active.set(0)
        if was_active:
            log.info("SOS 중지됨")
        return self._state


def _notify(callback: Optional[Callable[[Any], Any]], value: Any) -> None:
    if callback is None:
        return
    try:
        callback(value)
    except Exception as e:
        log.error("SOS 콜백 오류", error=str(e))
