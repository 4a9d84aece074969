"""
Clock helpers for SentinelNet.

All timestamps in the domain are epoch milliseconds.
"""

import time


def now_ms() -> int:
    """현재 시각을 epoch 밀리초로 반환합니다."""
    return int(time.time() * 1000)
