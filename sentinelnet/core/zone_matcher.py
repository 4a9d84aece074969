"""
Zone matching for SentinelNet.

This module decides whether a location fix falls inside a circular
alert zone. Stale fixes widen the effective radius so that an at-risk
user is not excluded because the last fix is a few minutes old.
"""

from typing import Optional
from sentinelnet.common.clock import now_ms
from sentinelnet.core.geo import distance_meters
from sentinelnet.core.models import LocationFix, MatchReason, Zone, ZoneMatchResult

# 위치 유효 시간 (5분)
STALENESS_WINDOW_MS = 5 * 60 * 1000

# 오래된 위치의 반경 확대 배수
STALE_RADIUS_MULTIPLIER = 1.5

FRESH_CONFIDENCE = 1.0
STALE_CONFIDENCE = 0.7


def is_stale(location: LocationFix,
             *,
             now: Optional[int] = None,
             staleness_window_ms: int = STALENESS_WINDOW_MS) -> bool:
    """
    위치가 오래되었는지 확인합니다.

    Args:
        location: 확인할 위치
        now: 현재 시각 (epoch ms), None이면 현재 시간 사용
        staleness_window_ms: 유효 시간 (ms)

    Returns:
        타임스탬프가 없거나 유효 시간을 넘었으면 True
    """
    if location.timestamp is None:
        return True
    if now is None:
        now = now_ms()
    return now - location.timestamp > staleness_window_ms


def _zone_is_valid(zone: Optional[Zone]) -> bool:
    return zone is not None and zone.center is not None and zone.radius > 0


def evaluate(location: Optional[LocationFix],
             zone: Optional[Zone],
             *,
             now: Optional[int] = None,
             staleness_window_ms: int = STALENESS_WINDOW_MS,
             stale_radius_multiplier: float = STALE_RADIUS_MULTIPLIER) -> ZoneMatchResult:
    """
    위치가 존 내부에 있는지 평가합니다.

    Args:
        location: 사용자 위치
        zone: 평가할 원형 존
        now: 현재 시각 (epoch ms)
        staleness_window_ms: 위치 유효 시간 (ms)
        stale_radius_multiplier: 오래된 위치에 적용할 반경 배수

    Returns:
        존 매칭 결과
    """
    if location is None or not _zone_is_valid(zone):
        return ZoneMatchResult(
            is_inside=False,
            confidence=0.0,
            reason=MatchReason.INVALID_INPUT,
        )

    distance = distance_meters(location, zone.center)

    if is_stale(location, now=now, staleness_window_ms=staleness_window_ms):
        effective_radius = zone.radius * stale_radius_multiplier
        confidence = STALE_CONFIDENCE
        reason = MatchReason.STALE_LOCATION_CONSERVATIVE
    else:
        effective_radius = zone.radius
        confidence = FRESH_CONFIDENCE
        reason = MatchReason.FRESH_LOCATION

    return ZoneMatchResult(
        is_inside=distance <= effective_radius,
        confidence=confidence,
        reason=reason,
        distance=distance,
        effective_radius=effective_radius,
    )
