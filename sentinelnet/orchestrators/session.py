"""
Emergency session orchestrator for SentinelNet.

This module wires the remote alert feed, the decision engine, the
location tracker and the SOS engine into one per-user session.
Alerts are evaluated against the location current at processing time,
read through an accessor rather than a captured variable.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional
from sentinelnet.core.models import Decision, LocationFix, SOSState, TrackingContext
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger
from sentinelnet.orchestrators.alert_engine import AlertDecisionEngine
from sentinelnet.orchestrators.location_tracker import AdaptiveLocationTracker
from sentinelnet.orchestrators.sos_engine import INACTIVE_PHASES, SOSTransactionEngine
from sentinelnet.ports.ingest import AlertFeedPort

log = get_logger("sentinelnet.session")

LocationProvider = Callable[[], Optional[LocationFix]]


class EmergencySession:
    """사용자 단위 긴급 대응 세션"""

    def __init__(self,
                 feed: Optional[AlertFeedPort],
                 decisions: AlertDecisionEngine,
                 tracker: AdaptiveLocationTracker,
                 sos: SOSTransactionEngine,
                 *,
                 location_provider: Optional[LocationProvider] = None,
                 queue_maxsize: int = 1000):
        """
        초기화합니다.

        Args:
            feed: 원격 경보 피드 (None이면 수집 없이 직접 처리만 수행)
            decisions: 경보 결정 엔진
            tracker: 적응형 위치 추적기
            sos: SOS 트랜잭션 엔진
            location_provider: 현재 위치 접근자 (기본값: 추적기의 최신 위치)
            queue_maxsize: 경보 큐 최대 크기
        """
        self.feed = feed
        self.decisions = decisions
        self.tracker = tracker
        self.sos = sos
        self.location_provider = location_provider or (lambda: self.tracker.latest_fix)
        self.q: asyncio.Queue = asyncio.Queue(maxsize=queue_maxsize)
        self.active_alerts: Dict[str, Decision] = {}
        self._tasks: List[asyncio.Task] = []
        self._alert_seq = 0

    def current_location(self) -> Optional[LocationFix]:
        """처리 시점의 현재 위치를 조회합니다."""
        return self.location_provider()

    async def start(self, context: Optional[TrackingContext] = None) -> None:
        """
        세션을 시작합니다.

        SOS 복구 -> 위치 추적 -> 수집/처리 파이프라인 순서로 실행합니다.
        """
        recovered = await self.sos.recover()

        await self.tracker.start(self._on_location, self._on_location_error, context)

        if recovered is not None and recovered.phase not in INACTIVE_PHASES:
            log.warning("진행 중이던 SOS 재개", phase=recovered.phase.value)
            self._tasks.append(asyncio.create_task(self.sos.resume()))

        pipeline = [asyncio.create_task(self._consumer())]
        if self.feed is not None:
            pipeline.append(asyncio.create_task(self._producer()))
        else:
            log.info("경보 피드 비활성화됨")
        self._tasks.extend(pipeline)
        log.info("긴급 대응 세션 시작됨")

        await asyncio.gather(*pipeline)

    async def shutdown(self) -> None:
        """세션을 종료합니다. SOS 상태는 보존됩니다."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await self.tracker.stop()
        log.info("긴급 대응 세션 종료됨")

    def _on_location(self, fix: LocationFix) -> None:
        log.debug("위치 갱신", latitude=fix.latitude, longitude=fix.longitude)

    def _on_location_error(self, message: str) -> None:
        log.warning("사용 가능한 위치 없음", error=message)

    async def _producer(self) -> None:
        """원시 경보를 큐에 추가하는 프로듀서"""
        async for raw in self.feed.recv():
            metrics.alerts_received.labels(source="feed").inc()
            try:
                self.q.put_nowait(raw)
                metrics.queue_depth.set(self.q.qsize())
            except asyncio.QueueFull:
                log.warning("큐가 가득 찼습니다. 경보를 드롭합니다.")

    async def _consumer(self) -> None:
        """큐에서 경보를 소비하는 컨슈머"""
        while True:
            raw = await self.q.get()
            try:
                self.handle_alert(raw)
            except Exception as e:
                log.error("경보 처리 오류", error=str(e))
            finally:
                self.q.task_done()
                metrics.queue_depth.set(self.q.qsize())

    def handle_alert(self, raw: Any) -> Decision:
        """
        경보 하나를 현재 위치로 평가하고 트리거되면 활성 경보에 등록합니다.

        Args:
            raw: 원시 경보 페이로드

        Returns:
            경보 결정
        """
        decision = self.decisions.process(self.current_location(), raw)
        if decision.should_trigger:
            alert_id = self._alert_id(raw)
            self.active_alerts[alert_id] = decision
            log.info("활성 경보 등록", alert_id=alert_id, active=len(self.active_alerts))
        return decision

    def _alert_id(self, raw: Any) -> str:
        alert_id = raw.get("id") if isinstance(raw, dict) else getattr(raw, "id", None)
        if alert_id:
            return str(alert_id)
        self._alert_seq += 1
        return f"alert-{self._alert_seq}"

    def dismiss_alert(self, alert_id: str) -> bool:
        """
        활성 경보를 해제합니다. 남은 경보가 없으면 디바이스 효과를 중지합니다.

        Returns:
            해제된 경보가 있었는지 여부
        """
        removed = self.active_alerts.pop(alert_id, None) is not None
        if not self.active_alerts:
            self.decisions.severity.stop_responses()
        return removed

    async def start_sos(self, **callbacks) -> SOSState:
        """SOS 흐름을 시작합니다 (이미 활성이면 SOSAlreadyActiveError)."""
        return await self.sos.execute_sos_flow(**callbacks)

    async def stop_sos(self) -> SOSState:
        """SOS를 중지합니다."""
        return await self.sos.stop()

    def status(self) -> Dict[str, Any]:
        """세션 상태 요약"""
        return {
            "sos": self.sos.state.model_dump(mode="json"),
            "tracking": self.tracker.status(),
            "active_alerts": sorted(self.active_alerts.keys()),
            "queue_depth": self.q.qsize(),
            "feed_enabled": self.feed is not None,
        }
