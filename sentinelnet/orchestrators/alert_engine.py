"""
Deterministic alert decision engine for SentinelNet.

This engine is rule-driven with no probabilistic elements, so every
outcome is explainable and auditable. Checks run in a fixed order
and short-circuit:

    1. no user location          -> SKIP_NO_LOCATION
    2. malformed payload / zone  -> SKIP_INVALID_PAYLOAD
    3. outside effective radius  -> SKIP_OUTSIDE_ZONE
    4. otherwise                 -> TRIGGER (with severity signals)

Alerts fail closed: any ambiguity about eligibility means no trigger.
"""

import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional
from sentinelnet.common.clock import now_ms
from sentinelnet.core import zone_matcher
from sentinelnet.core.models import (
    AlertPayload, Decision, DecisionCode, LocationFix, MatchReason,
)
from sentinelnet.core.normalize import to_alert_payload
from sentinelnet.core.severity import signals_for
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger
from sentinelnet.orchestrators.severity_controller import SeverityController

log = get_logger("sentinelnet.decision")

# 감사 로그 최대 길이
DECISION_LOG_CAP = 50


def _snapshot(location: Optional[LocationFix], alert: Any) -> Dict[str, Any]:
    """결정 입력의 감사용 스냅샷을 만듭니다."""
    if isinstance(alert, AlertPayload):
        raw: Dict[str, Any] = alert.model_dump()
    elif isinstance(alert, dict):
        raw = alert
    else:
        raw = {}
    zone = raw.get("zone") if isinstance(raw.get("zone"), dict) else {}

    return {
        "user_location": (
            {"latitude": location.latitude, "longitude": location.longitude}
            if location is not None else None
        ),
        "alert_type": raw.get("type"),
        "alert_severity": raw.get("severity"),
        "zone_name": zone.get("name"),
    }


class AlertDecisionEngine:
    """경보 결정 엔진"""

    def __init__(self,
                 severity: SeverityController,
                 *,
                 decision_log_cap: int = DECISION_LOG_CAP,
                 staleness_window_ms: int = zone_matcher.STALENESS_WINDOW_MS,
                 stale_radius_multiplier: float = zone_matcher.STALE_RADIUS_MULTIPLIER,
                 clock: Callable[[], int] = now_ms):
        """
        초기화합니다.

        Args:
            severity: 심각도 컨트롤러
            decision_log_cap: 결정 로그 최대 길이
            staleness_window_ms: 위치 유효 시간 (ms)
            stale_radius_multiplier: 오래된 위치의 반경 배수
            clock: 현재 시각(epoch ms) 제공 함수
        """
        self.severity = severity
        self.staleness_window_ms = staleness_window_ms
        self.stale_radius_multiplier = stale_radius_multiplier
        self.clock = clock
        self._log: Deque[Decision] = deque(maxlen=decision_log_cap)

    @property
    def decision_log(self) -> List[Decision]:
        """결정 로그 (오래된 것부터)"""
        return list(self._log)

    def decide(self, location: Optional[LocationFix], alert: Any) -> Decision:
        """
        경보가 사용자에게 적용되는지 결정합니다.

        Args:
            location: 사용자의 현재 위치
            alert: 경보 페이로드 (AlertPayload 또는 원시 딕셔너리)

        Returns:
            감사 정보를 포함한 결정
        """
        t0 = time.perf_counter()
        now = self.clock()
        snapshot = _snapshot(location, alert)

        decision = self._evaluate(location, alert, now, snapshot)

        self._log.append(decision)
        metrics.alert_decisions.labels(code=decision.code.value).inc()
        metrics.decision_seconds.observe(time.perf_counter() - t0)
        log.info(f"[{decision.code.value}] {snapshot['alert_type']} "
                 f"({snapshot['alert_severity']}) - {decision.reason}")
        return decision

    def _evaluate(self, location: Optional[LocationFix], alert: Any,
                  now: int, snapshot: Dict[str, Any]) -> Decision:
        # 1. 사용자 위치 확인
        if location is None:
            return Decision(
                should_trigger=False,
                code=DecisionCode.SKIP_NO_LOCATION,
                reason="User location not available",
                timestamp=now,
                inputs_snapshot=snapshot,
            )

        # 2. 페이로드 구조 검증
        try:
            payload = to_alert_payload(alert)
        except (TypeError, ValueError):
            return Decision(
                should_trigger=False,
                code=DecisionCode.SKIP_INVALID_PAYLOAD,
                reason="Alert payload missing required fields",
                timestamp=now,
                inputs_snapshot=snapshot,
            )

        # 3. 존 매칭 (오래된 위치는 보수적 포함)
        match = zone_matcher.evaluate(
            location,
            payload.zone,
            now=now,
            staleness_window_ms=self.staleness_window_ms,
            stale_radius_multiplier=self.stale_radius_multiplier,
        )

        if match.reason == MatchReason.INVALID_INPUT:
            return Decision(
                should_trigger=False,
                code=DecisionCode.SKIP_INVALID_PAYLOAD,
                reason="Alert zone is invalid (missing center or non-positive radius)",
                timestamp=now,
                inputs_snapshot=snapshot,
                zone_match=match,
            )

        if not match.is_inside:
            return Decision(
                should_trigger=False,
                code=DecisionCode.SKIP_OUTSIDE_ZONE,
                reason=(f"User {match.distance:.0f}m from zone center "
                        f"(radius: {match.effective_radius:.0f}m)"),
                timestamp=now,
                inputs_snapshot=snapshot,
                zone_match=match,
            )

        # 4. 트리거
        return Decision(
            should_trigger=True,
            code=DecisionCode.TRIGGER,
            reason=(f"User inside {payload.zone.name or 'affected zone'} "
                    f"(confidence: {match.confidence * 100:.0f}%)"),
            timestamp=now,
            inputs_snapshot=snapshot,
            zone_match=match,
            severity_signals=signals_for(payload.severity),
        )

    def process(self, location: Optional[LocationFix], alert: Any) -> Decision:
        """
        경보를 결정하고 트리거된 경우 디바이스 응답을 실행합니다.

        결정과 디바이스 효과를 잇는 유일한 통합 지점입니다.
        """
        decision = self.decide(location, alert)
        if decision.should_trigger and decision.severity_signals is not None:
            self.severity.respond(decision.severity_signals.severity)
        return decision
