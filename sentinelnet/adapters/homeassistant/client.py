"""
Home Assistant API client for SentinelNet.

This module provides a client for the Home Assistant REST API,
used to read device tracker positions and to send mobile push
notifications.
"""

import aiohttp
from typing import Any, Dict, List, Optional
from sentinelnet.observability.logging_setup import get_logger
from sentinelnet.common.retry import retry_with_backoff

log = get_logger("sentinelnet.ha")

class HAClient:
    """Home Assistant API 클라이언트"""

    def __init__(self,
                 base_url: str,
                 token: str,
                 timeout: int = 30,
                 max_retries: int = 3):
        """
        초기화합니다.

        Args:
            base_url: Home Assistant API 기본 URL
            token: Home Assistant 장기 토큰
            timeout: 요청 타임아웃 (초)
            max_retries: 요청 재시도 횟수
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.max_retries = max_retries
        self.session: Optional[aiohttp.ClientSession] = None

        log.info("Home Assistant 클라이언트 초기화됨")

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        await self.close()

    async def open(self) -> None:
        """HTTP 세션을 엽니다."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json"
                },
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )

    async def close(self) -> None:
        """HTTP 세션을 닫습니다."""
        if self.session is not None:
            await self.session.close()
            self.session = None

    async def _make_request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        API 요청을 수행합니다.

        Args:
            method: HTTP 메서드
            endpoint: API 엔드포인트
            **kwargs: 추가 요청 매개변수

        Returns:
            응답 데이터
        """
        await self.open()
        url = f"{self.base_url}{endpoint}"

        async def _request():
            async with self.session.request(method, url, **kwargs) as response:
                response.raise_for_status()
                return await response.json()

        return await retry_with_backoff(_request,
                                        max_retries=self.max_retries,
                                        retry_on=(aiohttp.ClientError,),
                                        operation=f"ha {method} {endpoint}")

    async def get_state(self, entity_id: str) -> Optional[Dict[str, Any]]:
        """
        엔티티 상태를 가져옵니다.

        Args:
            entity_id: 엔티티 ID (예: "device_tracker.phone")

        Returns:
            상태 딕셔너리
        """
        return await self._make_request("GET", f"/api/states/{entity_id}")

    async def get_entity_location(self, entity_id: str) -> Optional[Dict[str, Any]]:
        """
        엔티티의 위치 속성을 가져옵니다.

        Returns:
            {"latitude", "longitude", "accuracy", "last_updated"} 또는 None
        """
        data = await self.get_state(entity_id)
        if not data or "attributes" not in data:
            return None

        attrs = data["attributes"]
        if "latitude" not in attrs or "longitude" not in attrs:
            log.warning(f"{entity_id} 위치 속성을 찾을 수 없습니다")
            return None

        return {
            "latitude": float(attrs["latitude"]),
            "longitude": float(attrs["longitude"]),
            "accuracy": float(attrs["gps_accuracy"]) if attrs.get("gps_accuracy") is not None else None,
            "last_updated": data.get("last_updated"),
        }

    async def list_notify_mobile_services(self) -> List[str]:
        """모바일 앱 notify 서비스 목록을 가져옵니다."""
        try:
            svcs = await self._make_request("GET", "/api/services")
            mobile_services = []
            for service in svcs:
                if service.get("domain") == "notify":
                    for name in service.get("services", {}).keys():
                        if name.startswith("mobile_app_"):
                            mobile_services.append(name)
            log.info(f"모바일 notify 서비스 목록 가져옴 count:{len(mobile_services)}")
            return mobile_services
        except Exception as e:
            log.error(f"모바일 notify 서비스 목록 가져오기 실패 error:{str(e)}")
            return []

    async def notify(self, service: str, title: str, message: str,
                     data: Optional[Dict[str, Any]] = None) -> Any:
        """모바일 앱에 푸시 알림을 발송합니다."""
        payload: Dict[str, Any] = {"title": title, "message": message}
        if data:
            payload["data"] = data

        try:
            result = await self._make_request(
                "POST", f"/api/services/notify/{service}", json=payload
            )
            log.info(f"푸시 알림 발송 성공 service:{service} title:{title}")
            return result
        except Exception as e:
            log.error(f"푸시 알림 발송 실패 service:{service} error:{str(e)}")
            raise
