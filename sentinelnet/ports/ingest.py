"""
Alert feed port interface.

This module defines the protocol for the remote alert feed.
"""

from typing import AsyncIterator, Protocol


class AlertFeedPort(Protocol):
    """경보 피드 포트 인터페이스"""

    def recv(self) -> AsyncIterator[dict]:
        """
        원시 경보 데이터를 비동기적으로 수신합니다.

        Yields:
            원시 딕셔너리 데이터
        """
        ...
