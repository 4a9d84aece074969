"""
Severity controller for SentinelNet.

This module dispatches device-level responses (vibration, audio)
according to the severity control signals.
"""

from typing import Any, Optional
from sentinelnet.core.models import SeverityControlSignals
from sentinelnet.core.severity import compare_severity, signals_for
from sentinelnet.observability.logging_setup import get_logger
from sentinelnet.ports.effects import DeviceEffectsPort

log = get_logger("sentinelnet.severity")


class SeverityController:
    """심각도 기반 디바이스 응답 컨트롤러"""

    def __init__(self, effects: DeviceEffectsPort):
        """
        초기화합니다.

        Args:
            effects: 디바이스 효과 포트
        """
        self.effects = effects
        self.active_signals: Optional[SeverityControlSignals] = None

    @staticmethod
    def signals_for(severity: Any) -> SeverityControlSignals:
        return signals_for(severity)

    @staticmethod
    def compare(a: Any, b: Any) -> int:
        return compare_severity(a, b)

    def respond(self, severity: Any) -> SeverityControlSignals:
        """
        심각도에 따른 디바이스 응답을 실행합니다.

        Args:
            severity: 경보 심각도

        Returns:
            사용된 제어 신호 (감사용)
        """
        signals = signals_for(severity)

        if signals.vibration_pattern:
            self.effects.vibrate(signals.vibration_pattern)

        if signals.alarm_mode:
            self.effects.play_alarm_loop()
            log.warning("연속 경보 모드 활성화", severity=signals.severity.value)
        elif signals.sound_enabled:
            self.effects.play_alert_once()
            log.info("알림음 재생", severity=signals.severity.value)

        self.active_signals = signals
        return signals

    def stop_responses(self) -> None:
        """진행 중인 진동/경보를 모두 중지합니다. 활성 응답이 없어도 안전합니다."""
        self.effects.vibrate_stop()
        self.effects.stop_audio()
        if self.active_signals is not None:
            log.info("모든 심각도 응답 중지됨")
        self.active_signals = None
