"""
Normalization functions for SentinelNet.

This module contains pure functions for converting raw alert feed
payloads into internal domain models.
"""

from typing import Any, Dict, Optional
from sentinelnet.core.models import AlertPayload, Coordinate
from sentinelnet.core.severity import parse_severity
from sentinelnet.core.zones import lookup_zone
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.normalize")


def _to_center(raw_center: Any) -> Optional[Dict[str, Any]]:
    # {lat, lng} 형식과 {latitude, longitude} 형식 모두 허용
    if isinstance(raw_center, Coordinate):
        return raw_center.model_dump()
    if not isinstance(raw_center, dict):
        return None
    lat = raw_center.get("latitude", raw_center.get("lat"))
    lon = raw_center.get("longitude", raw_center.get("lng", raw_center.get("lon")))
    if lat is None or lon is None:
        return None
    return {"latitude": lat, "longitude": lon}


def _to_zone(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    raw_zone = raw.get("zone")
    zone_id = raw.get("zoneId")

    if isinstance(raw_zone, dict):
        zone_id = raw_zone.get("id", zone_id)
        center = _to_center(raw_zone.get("center"))
        if center is not None:
            return {
                "id": zone_id,
                "name": raw_zone.get("name"),
                "center": center,
                "radius": raw_zone.get("radius", 0),
            }

    # 중심 좌표가 없으면 카탈로그에서 id로 조회
    known = lookup_zone(zone_id)
    if known is not None:
        log.debug(f"카탈로그 존 사용: {zone_id}")
        return known.model_dump()

    return raw_zone if isinstance(raw_zone, dict) else None


def to_alert_payload(raw: Any) -> AlertPayload:
    """
    원시 경보 데이터를 AlertPayload로 변환합니다.

    Args:
        raw: 원격 피드의 원시 딕셔너리 또는 AlertPayload

    Returns:
        검증된 AlertPayload

    Raises:
        ValueError: 필수 필드가 없거나 형식이 잘못된 경우
            (pydantic.ValidationError 포함)
    """
    if isinstance(raw, AlertPayload):
        return raw
    if not isinstance(raw, dict):
        raise ValueError("alert payload must be a mapping")

    raw_severity = raw.get("severity")
    parsed = parse_severity(raw_severity)
    severity = parsed.value if parsed else raw_severity

    return AlertPayload.model_validate({
        "id": raw.get("id") or raw.get("alertId"),
        "type": raw.get("type"),
        "severity": severity,
        "zone": _to_zone(raw),
        "instructions": raw.get("instructions") or "",
        "authority_id": raw.get("authorityId") or raw.get("authority_id"),
    })
