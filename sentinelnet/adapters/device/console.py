"""
Logging device adapters for SentinelNet.

These adapters implement DeviceEffectsPort and CallInitiatorPort for
headless deployments, recording what the device would do.
"""

from typing import List, Optional, Sequence
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.device")


class LoggingDeviceEffects:
    """로그로 대체되는 진동/오디오 효과"""

    def __init__(self):
        self.vibrating: Optional[List[int]] = None
        self.audio: Optional[str] = None

    def vibrate(self, pattern: Sequence[int]) -> None:
        self.vibrating = list(pattern)
        log.info("진동 시작", pattern=self.vibrating)

    def vibrate_stop(self) -> None:
        if self.vibrating is not None:
            log.info("진동 중지")
        self.vibrating = None

    def play_alarm_loop(self) -> None:
        self.audio = "alarm_loop"
        log.info("연속 경보음 재생")

    def play_alert_once(self) -> None:
        self.audio = "alert_once"
        log.info("알림음 1회 재생")

    def stop_audio(self) -> None:
        if self.audio is not None:
            log.info("오디오 중지", audio=self.audio)
        self.audio = None


class LoggingCallInitiator:
    """로그로 대체되는 긴급 통화 연결기"""

    def __init__(self):
        self.calls: List[str] = []

    async def initiate(self, target: str) -> None:
        """통화 요청을 기록합니다."""
        self.calls.append(target)
        log.warning("긴급 통화 연결 요청", target=target)
