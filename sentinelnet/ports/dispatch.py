"""
Outbound dispatch port interfaces.

This module defines the protocols for the SMS-equivalent notification
dispatcher and the emergency call initiator. Both are best-effort.
"""

from typing import Any, Dict, Protocol


class NotificationDispatcherPort(Protocol):
    """알림 발송 포트 인터페이스"""

    async def send(self, payload: Dict[str, Any]) -> bool:
        """
        알림을 발송합니다.

        Args:
            payload: 발송할 페이로드

        Returns:
            발송 성공 여부
        """
        ...


class CallInitiatorPort(Protocol):
    """통화 연결 포트 인터페이스"""

    async def initiate(self, target: str) -> None:
        """
        통화를 시작합니다.

        Args:
            target: 통화 대상 번호
        """
        ...
