"""
Severity control signals for SentinelNet.

Severity is a control signal, not metadata: it drives notification
channel behavior, OS-level overrides, UI blocking and repetition.
This module holds the fixed lookup table and pure comparison helpers.
"""

from typing import Any, Dict, Optional
from sentinelnet.core.models import Severity, SeverityControlSignals

SEVERITY_CONTROL_MAP: Dict[Severity, SeverityControlSignals] = {
    Severity.LOW: SeverityControlSignals(
        severity=Severity.LOW,
        level=1,
        # 알림 동작
        override_silent=False,
        persistent_notification=False,
        lock_screen_display=False,
        # 오디오/햅틱
        sound_enabled=False,
        vibration_pattern=None,
        alarm_mode=False,
        # UI 동작
        blocking_overlay=False,
        repetition_interval_ms=None,
        color="#22c55e",
        bg_class="bg-severity-low",
        border_class="border-emerald-500",
    ),
    Severity.MEDIUM: SeverityControlSignals(
        severity=Severity.MEDIUM,
        level=2,
        override_silent=True,
        persistent_notification=True,
        lock_screen_display=True,
        sound_enabled=True,
        vibration_pattern=[200, 100, 200],
        alarm_mode=False,
        blocking_overlay=False,
        repetition_interval_ms=30000,
        color="#f97316",
        bg_class="bg-severity-medium",
        border_class="border-orange-500",
    ),
    Severity.HIGH: SeverityControlSignals(
        severity=Severity.HIGH,
        level=3,
        override_silent=True,
        persistent_notification=True,
        lock_screen_display=True,
        sound_enabled=True,
        vibration_pattern=[500, 200, 500, 200, 500],
        alarm_mode=True,
        blocking_overlay=True,
        repetition_interval_ms=10000,
        color="#ef4444",
        bg_class="bg-severity-high",
        border_class="border-red-500",
    ),
}


def parse_severity(value: Any) -> Optional[Severity]:
    """
    심각도 값을 대소문자 구분 없이 파싱합니다.

    Args:
        value: 원시 심각도 (문자열 또는 Severity)

    Returns:
        Severity 또는 알 수 없는 값이면 None
    """
    if isinstance(value, Severity):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Severity(value.strip().upper())
    except ValueError:
        return None


def signals_for(severity: Any) -> SeverityControlSignals:
    """
    심각도에 해당하는 제어 신호를 반환합니다.

    알 수 없거나 누락된 값은 LOW로 처리합니다 (잘못된 입력으로 격상하지 않음).
    """
    parsed = parse_severity(severity)
    return SEVERITY_CONTROL_MAP[parsed or Severity.LOW]


def severity_level(severity: Any) -> int:
    """심각도 레벨을 반환합니다. 알 수 없는 값은 0입니다."""
    parsed = parse_severity(severity)
    return SEVERITY_CONTROL_MAP[parsed].level if parsed else 0


def compare_severity(a: Any, b: Any) -> int:
    """
    두 심각도를 비교합니다.

    Returns:
        a < b이면 -1, 같으면 0, a > b이면 1
    """
    diff = severity_level(a) - severity_level(b)
    return (diff > 0) - (diff < 0)
