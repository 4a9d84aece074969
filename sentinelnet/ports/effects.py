"""
Device effects port interface.

This module defines the protocol for vibration and audio output.
"""

from typing import Protocol, Sequence


class DeviceEffectsPort(Protocol):
    """디바이스 효과 포트 인터페이스"""

    def vibrate(self, pattern: Sequence[int]) -> None:
        """진동 패턴(ms 단위 펄스 목록)을 실행합니다."""
        ...

    def vibrate_stop(self) -> None:
        """진동을 중지합니다."""
        ...

    def play_alarm_loop(self) -> None:
        """연속 경보음을 재생합니다."""
        ...

    def play_alert_once(self) -> None:
        """알림음을 한 번 재생합니다."""
        ...

    def stop_audio(self) -> None:
        """오디오 재생을 중지합니다."""
        ...
