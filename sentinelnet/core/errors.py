"""
Error types for SentinelNet.

Validation problems never surface as exceptions; they become SKIP_*
decisions. The types below cover the remaining failure classes.
"""


class SentinelError(Exception):
    """SentinelNet 기본 예외"""


class LocationUnavailableError(SentinelError):
    """위치 소스가 측위 결과를 제공하지 못함 (오류 또는 타임아웃)"""


class SOSAlreadyActiveError(SentinelError):
    """SOS 흐름이 이미 진행 중임"""


class DispatchError(SentinelError):
    """알림 발송 또는 통화 연결 실패"""


class PersistenceError(SentinelError):
    """영속 저장소 읽기/쓰기 실패"""
