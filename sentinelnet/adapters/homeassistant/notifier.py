"""
Home Assistant notification dispatcher for SentinelNet.

This module implements NotificationDispatcherPort by forwarding the
SOS message to a Home Assistant ``notify`` service.
"""

from typing import Any, Dict
from sentinelnet.adapters.homeassistant.client import HAClient
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.ha.notify")


class HomeAssistantNotifier:
    """Home Assistant notify 서비스 기반 알림 발송기"""

    def __init__(self, ha: HAClient, service: str, *, title: str = "SentinelNet SOS"):
        self.ha = ha
        self.service = service
        self.title = title

    async def send(self, payload: Dict[str, Any]) -> bool:
        """
        SOS 메시지를 notify 서비스로 발송합니다.

        Args:
            payload: type, message, location, timestamp 를 담은 페이로드

        Returns:
            발송 성공 여부
        """
        data = {
            "priority": "high",
            "ttl": 0,
            "tag": f"sentinelnet-{payload.get('type', 'alert').lower()}",
        }
        try:
            await self.ha.notify(self.service, self.title, payload["message"], data)
        except Exception as e:
            log.warning(f"notify 서비스 발송 실패: {e}")
            return False
        return True
