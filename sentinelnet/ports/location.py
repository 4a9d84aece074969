"""
Location source port interface.

This module defines the protocol for single-shot and continuous
location acquisition.
"""

from typing import AsyncIterator, Protocol, Union
from sentinelnet.core.errors import LocationUnavailableError
from sentinelnet.core.models import LocationFix, WatchOptions


class LocationSourcePort(Protocol):
    """위치 소스 포트 인터페이스"""

    async def get_once(self, options: WatchOptions) -> LocationFix:
        """
        한 번 측위합니다.

        Args:
            options: 측위 옵션

        Returns:
            측위 결과

        Raises:
            LocationUnavailableError: 측위 실패
        """
        ...

    def watch(self, options: WatchOptions) -> AsyncIterator[Union[LocationFix, LocationUnavailableError]]:
        """
        연속 측위 스트림을 구독합니다.

        오류는 스트림 항목으로 전달되며 스트림은 계속됩니다.

        Args:
            options: 구독 옵션

        Yields:
            측위 결과 또는 오류
        """
        ...

    def unsubscribe(self) -> None:
        """구독을 해제합니다."""
        ...
