"""
Home Assistant location source for SentinelNet.

This module implements LocationSourcePort on top of a Home Assistant
device tracker entity (for example the companion app's
``device_tracker.<phone>``), polling at the requested interval.
"""

import asyncio
from datetime import datetime
from typing import AsyncIterator, Optional, Union
from sentinelnet.adapters.homeassistant.client import HAClient
from sentinelnet.common.clock import now_ms
from sentinelnet.core.errors import LocationUnavailableError
from sentinelnet.core.geo import validate_coordinates
from sentinelnet.core.models import LocationFix, WatchOptions
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.ha.location")


def _parse_timestamp(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        return None


class HomeAssistantLocationSource:
    """Home Assistant device_tracker 기반 위치 소스"""

    def __init__(self, ha: HAClient, entity_id: str):
        """
        초기화합니다.

        Args:
            ha: Home Assistant 클라이언트
            entity_id: 추적할 엔티티 ID
        """
        self.ha = ha
        self.entity_id = entity_id
        self._watching = False

    async def get_once(self, options: WatchOptions) -> LocationFix:
        """엔티티의 현재 위치를 한 번 조회합니다."""
        try:
            loc = await self.ha.get_entity_location(self.entity_id)
        except Exception as e:
            raise LocationUnavailableError(f"{self.entity_id}: {e}") from e

        if loc is None:
            raise LocationUnavailableError(f"{self.entity_id} has no location")
        if not validate_coordinates(loc["latitude"], loc["longitude"]):
            raise LocationUnavailableError(f"{self.entity_id} reported invalid coordinates")

        fix = LocationFix(
            latitude=loc["latitude"],
            longitude=loc["longitude"],
            accuracy=loc["accuracy"],
            timestamp=_parse_timestamp(loc["last_updated"]) or now_ms(),
        )

        # HA는 보고된 위치만 제공하므로 오래된 위치는 기록만 남깁니다
        age_ms = now_ms() - fix.timestamp
        if options.max_fix_age_ms and age_ms > options.max_fix_age_ms:
            log.debug("캐시된 위치가 오래됨", entity_id=self.entity_id, age_ms=age_ms)
        return fix

    async def watch(self, options: WatchOptions) -> AsyncIterator[Union[LocationFix, LocationUnavailableError]]:
        """interval_ms마다 위치를 폴링합니다."""
        self._watching = True
        while self._watching:
            try:
                yield await self.get_once(options)
            except LocationUnavailableError as e:
                yield e
            await asyncio.sleep(options.interval_ms / 1000)

    def unsubscribe(self) -> None:
        self._watching = False
