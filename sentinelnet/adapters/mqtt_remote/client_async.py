"""
Remote MQTT alert feed for SentinelNet.

This module implements AlertFeedPort on top of an MQTT broker
carrying JSON-encoded alert payloads.
"""

import asyncio
import json
import ssl
from typing import AsyncIterator, Dict, Optional
from aiomqtt import Client, MqttError, Will

from sentinelnet.observability.logging_setup import get_logger
log = get_logger("sentinelnet.mqtt_feed")

class MqttAlertFeed:
    """원격 MQTT 경보 피드 어댑터"""

    def __init__(
        self,
        host: str,
        port: int,
        topic: str,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        tls: bool = False,
        client_id: Optional[str] = None,
        keepalive: int = 30,
        clean_session: bool = False,
        reconnect_delay_sec: float = 5.0,
        lwt_topic: str = "sentinelnet/state",
        lwt_payload: str = "offline",
    ):
        self.host = host
        self.port = port
        self.topic = topic
        self.username = username
        self.password = password
        self.tls = tls
        self.client_id = client_id
        self.keepalive = keepalive
        self.clean_session = clean_session
        self.reconnect_delay_sec = reconnect_delay_sec
        self.lwt_topic = lwt_topic
        self.lwt_payload = lwt_payload

        self._running = False

    def _client(self) -> Client:
        tls_context = ssl.create_default_context() if self.tls else None
        will = Will(
            topic=self.lwt_topic,
            payload=self.lwt_payload.encode("utf-8"),
            qos=1,
            retain=True,
        )
        return Client(
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            identifier=self.client_id,
            keepalive=self.keepalive,
            clean_session=self.clean_session,
            tls_context=tls_context,
            will=will,
        )

    @staticmethod
    def decode(raw: bytes) -> Optional[Dict]:
        """
        메시지 페이로드를 디코딩합니다.

        Returns:
            JSON 객체 또는 디코딩 실패 시 None
        """
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            log.error(f"페이로드 디코딩 오류: {e}")
            return None
        if not isinstance(payload, dict):
            log.error(f"JSON 객체가 아닌 페이로드: {type(payload).__name__}")
            return None
        return payload

    async def recv(self) -> AsyncIterator[Dict]:
        self._running = True
        while self._running:
            try:
                async with self._client() as client:
                    log.info(f"MQTT 브로커 연결됨: {self.host}:{self.port}")
                    await client.subscribe(self.topic, qos=1)
                    log.info(f"토픽 구독됨: {self.topic}")
                    async for message in client.messages:
                        if not self._running:
                            break
                        raw = message.payload
                        if isinstance(raw, str):
                            raw = raw.encode("utf-8")
                        if not isinstance(raw, (bytes, bytearray)):
                            continue
                        payload = self.decode(bytes(raw))
                        if payload is not None:
                            yield payload
            except MqttError as e:
                log.error(f"MQTT 오류: {e}")
                if self._running:
                    await asyncio.sleep(self.reconnect_delay_sec)

    async def stop(self) -> None:
        self._running = False
        log.info("MQTT 피드 중지됨")
