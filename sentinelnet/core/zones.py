"""
Static zone catalog for SentinelNet.

Zones normally arrive inside alert payloads; this catalog holds
known zones that alerts may reference by id.
"""

from typing import Any, Dict, Optional
from sentinelnet.core.models import Coordinate, Zone

ZONE_CATALOG: Dict[str, Zone] = {
    "zone-1": Zone(
        id="zone-1",
        name="Downtown Area",
        center=Coordinate(latitude=12.9716, longitude=77.5946),
        radius=5000,
    ),
}


def lookup_zone(zone_id: Any) -> Optional[Zone]:
    """id로 카탈로그의 존을 조회합니다. 문자열이나 숫자가 아닌 id는 무시합니다."""
    if isinstance(zone_id, int) and not isinstance(zone_id, bool):
        zone_id = str(zone_id)
    if not zone_id or not isinstance(zone_id, str):
        return None
    return ZONE_CATALOG.get(zone_id)
