"""
Core domain models for SentinelNet.

This module defines the core domain models using Pydantic v2
for type safety and validation. All values delivered across engine
boundaries are immutable snapshots.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _optional_text(value: Any) -> Optional[str]:
    # 숫자 id는 문자열로, 그 밖의 비문자열 값은 없는 것으로 취급
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    return value if isinstance(value, str) else None


class Severity(str, Enum):
    """경보 심각도"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class MatchReason(str, Enum):
    """존 매칭 결과 사유"""
    INVALID_INPUT = "INVALID_INPUT"
    FRESH_LOCATION = "FRESH_LOCATION"
    STALE_LOCATION_CONSERVATIVE = "STALE_LOCATION_CONSERVATIVE"


class DecisionCode(str, Enum):
    """경보 결정 코드"""
    TRIGGER = "TRIGGER"
    SKIP_OUTSIDE_ZONE = "SKIP_OUTSIDE_ZONE"
    SKIP_INVALID_PAYLOAD = "SKIP_INVALID_PAYLOAD"
    SKIP_NO_LOCATION = "SKIP_NO_LOCATION"


class SOSPhase(str, Enum):
    """SOS 트랜잭션 단계"""
    IDLE = "IDLE"
    GPS_CAPTURING = "GPS_CAPTURING"
    GPS_CAPTURED = "GPS_CAPTURED"
    SMS_DISPATCHING = "SMS_DISPATCHING"
    SMS_DISPATCHED = "SMS_DISPATCHED"
    CALL_INITIATING = "CALL_INITIATING"
    STREAMING = "STREAMING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Coordinate(BaseModel):
    """위경도 좌표 (불변)"""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class LocationFix(BaseModel):
    """위치 측위 결과

    timestamp는 epoch 밀리초이며, 없으면 오래된 위치로 취급됩니다.
    """
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = None
    timestamp: Optional[int] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class Zone(BaseModel):
    """원형 경보 영역

    반경/중심 검증은 존 매처가 담당합니다 (잘못된 존은 INVALID_INPUT).
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: Optional[str] = None
    center: Optional[Coordinate] = None
    radius: float = 0.0

    @field_validator("id", "name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _optional_text(value)


class AlertPayload(BaseModel):
    """원격 피드에서 수신한 경보 페이로드"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = None
    type: str = Field(min_length=1)
    severity: str = Field(min_length=1)
    zone: Zone
    instructions: str = ""
    authority_id: Optional[str] = Field(default=None, alias="authorityId")

    @field_validator("id", "authority_id", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("instructions", mode="before")
    @classmethod
    def _coerce_instructions(cls, value: Any) -> str:
        return _optional_text(value) or ""

    @field_validator("zone")
    @classmethod
    def _zone_needs_center(cls, zone: Zone) -> Zone:
        if zone.center is None:
            raise ValueError("zone.center is required")
        return zone


class ZoneMatchResult(BaseModel):
    """존 매칭 결과 (결정마다 계산)"""
    model_config = ConfigDict(frozen=True)

    is_inside: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reason: MatchReason
    distance: Optional[float] = None
    effective_radius: Optional[float] = None


class SeverityControlSignals(BaseModel):
    """심각도별 디바이스 응답 제어 신호"""
    model_config = ConfigDict(frozen=True)

    severity: Severity
    level: int = Field(ge=1, le=3)
    override_silent: bool
    persistent_notification: bool
    lock_screen_display: bool
    sound_enabled: bool
    vibration_pattern: Optional[List[int]] = None
    alarm_mode: bool
    blocking_overlay: bool
    repetition_interval_ms: Optional[int] = None
    color: str
    bg_class: str
    border_class: str


class Decision(BaseModel):
    """경보 결정 감사 레코드"""
    model_config = ConfigDict(frozen=True)

    should_trigger: bool
    code: DecisionCode
    reason: str
    timestamp: int
    inputs_snapshot: Dict[str, Any] = Field(default_factory=dict)
    zone_match: Optional[ZoneMatchResult] = None
    severity_signals: Optional[SeverityControlSignals] = None


class StepOutcome(BaseModel):
    """부가 단계(SMS, 통화)의 시도/성공 기록"""
    model_config = ConfigDict(frozen=True)

    attempted: bool = False
    succeeded: bool = False
    error: Optional[str] = None


class SOSState(BaseModel):
    """진행 중인 SOS 트랜잭션 레코드

    필드명은 영속 저장소의 레이아웃이므로 변경하면 안 됩니다.
    """
    model_config = ConfigDict(frozen=True)

    phase: SOSPhase = SOSPhase.IDLE
    location: Optional[LocationFix] = None
    sms_dispatched: bool = False
    call_initiated: bool = False
    streaming_active: bool = False
    sms: StepOutcome = Field(default_factory=StepOutcome)
    call: StepOutcome = Field(default_factory=StepOutcome)
    error: Optional[str] = None
    last_updated: int = 0


class TrackingContext(BaseModel):
    """위치 추적 주기 계산 컨텍스트"""
    model_config = ConfigDict(frozen=True)

    sos_active: bool = False
    battery_level: Optional[float] = None
    low_power_mode: bool = False


class WatchOptions(BaseModel):
    """위치 소스 구독 옵션"""
    model_config = ConfigDict(frozen=True)

    high_accuracy: bool = True
    timeout_ms: int = 10000
    max_fix_age_ms: int = 30000
    interval_ms: int = 15000
