# sentinelnet/settings.py
from __future__ import annotations
from pydantic import BaseModel, Field

class ZonePolicy(BaseModel):
    staleness_window_ms: int = 300000          # 5분
    stale_radius_multiplier: float = 1.5

class SOSPolicy(BaseModel):
    validity_window_ms: int = 1800000          # 30분
    gps_timeout_ms: int = 10000
    emergency_target: str = "112"
    sms_max_retries: int = 2
    sms_backoff_sec: float = 0.5
    call_timeout_sec: float = 5.0
    sms_timeout_sec: float = 10.0

class Tracking(BaseModel):
    sos_interval_ms: int = 3000
    normal_interval_ms: int = 15000
    conservative_interval_ms: int = 60000
    stationary_interval_ms: int = 120000
    low_battery_threshold: int = 15
    stationary_threshold_m: float = 5.0
    fix_timeout_ms: int = 10000
    normal_max_age_ms: int = 30000
    history_cap: int = 50

    def intervals(self) -> dict:
        return {
            "aggressive": self.sos_interval_ms,
            "normal": self.normal_interval_ms,
            "conservative": self.conservative_interval_ms,
            "stationary": self.stationary_interval_ms,
        }

class Storage(BaseModel):
    backend: str = "sqlite"                    # sqlite | memory
    path: str = "/data/sentinelnet.db"

class HAConfig(BaseModel):
    base_url: str = "http://supervisor/core"
    token: str = ""
    timeout_sec: int = 5
    entity_id: str = "device_tracker.phone"
    notify_service: str = "notify"

class AlertFeed(BaseModel):
    enabled: bool = True
    host: str = "core-mosquitto"
    port: int = 1883
    topic: str = "sentinelnet/alerts/#"
    username: str | None = None
    password: str | None = None
    tls: bool = False
    client_id: str | None = None
    keepalive: int = 30
    queue_maxsize: int = 1000

class Observability(BaseModel):
    http_port: int = 8099
    metrics_enabled: bool = True
    service_name: str = "SentinelNet"
    build_version: str = "0.1.0"
    build_date: str = "2026-01-01"
    log_level: str = "INFO"

class Settings(BaseModel):
    decision_log_cap: int = 50

    # 하위 섹션 (기본값/팩토리로 누락 방지)
    zone_policy: ZonePolicy = Field(default_factory=ZonePolicy)
    sos: SOSPolicy = Field(default_factory=SOSPolicy)
    tracking: Tracking = Field(default_factory=Tracking)
    storage: Storage = Field(default_factory=Storage)
    ha: HAConfig = Field(default_factory=HAConfig)
    alert_feed: AlertFeed = Field(default_factory=AlertFeed)
    observability: Observability = Field(default_factory=Observability)
