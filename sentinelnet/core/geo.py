"""
Geographic utilities for SentinelNet.

This module provides great-circle distance calculation
and coordinate validation.
"""

import math
from typing import Union
from sentinelnet.core.models import Coordinate, LocationFix

# 지구 반지름 (미터)
EARTH_RADIUS_M = 6371000.0

Point = Union[Coordinate, LocationFix]


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (미터).

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (미터)
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    # 대척점 부근 부동소수 오차로 a가 [0, 1]을 벗어날 수 있음
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance_meters(a: Point, b: Point) -> float:
    """두 좌표 간의 대권 거리를 미터 단위로 반환합니다."""
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def validate_coordinates(lat: float, lon: float) -> bool:
    """
    좌표가 유효한지 확인합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유효하면 True
    """
    return -90 <= lat <= 90 and -180 <= lon <= 180
