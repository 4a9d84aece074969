# sentinelnet/main.py
import os, asyncio, signal
from typing import Optional
import uvicorn
from sentinelnet.settings import Settings
from sentinelnet.observability.health import create_app
from sentinelnet.observability.logging_setup import setup_logging_dev, get_logger
from sentinelnet.adapters.storage import InMemoryKVStore, SQLiteKVStore, SOSStateRecord, LocationHistoryRecord
from sentinelnet.adapters.homeassistant import HAClient, HomeAssistantLocationSource, HomeAssistantNotifier
from sentinelnet.adapters.mqtt_remote import MqttAlertFeed
from sentinelnet.adapters.device import LoggingDeviceEffects, LoggingCallInitiator
from sentinelnet.orchestrators import (
    SeverityController, AlertDecisionEngine, AdaptiveLocationTracker,
    SOSTransactionEngine, EmergencySession,
)
from sentinelnet.ports.kvstore import KVStorePort

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    s = Settings()
    s.decision_log_cap = int(os.getenv("DECISION_LOG_CAP", s.decision_log_cap))

    # 구역 판정
    s.zone_policy.staleness_window_ms = int(os.getenv("STALENESS_WINDOW_MS", s.zone_policy.staleness_window_ms))
    s.zone_policy.stale_radius_multiplier = float(os.getenv("STALE_RADIUS_MULTIPLIER", s.zone_policy.stale_radius_multiplier))

    # SOS
    s.sos.validity_window_ms = int(os.getenv("SOS_VALIDITY_WINDOW_MS", s.sos.validity_window_ms))
    s.sos.gps_timeout_ms = int(os.getenv("SOS_GPS_TIMEOUT_MS", s.sos.gps_timeout_ms))
    s.sos.emergency_target = os.getenv("SOS_EMERGENCY_TARGET", s.sos.emergency_target)
    s.sos.sms_max_retries = int(os.getenv("SOS_SMS_MAX_RETRIES", s.sos.sms_max_retries))
    s.sos.sms_timeout_sec = float(os.getenv("SOS_SMS_TIMEOUT_SEC", s.sos.sms_timeout_sec))

    # 위치 추적
    s.tracking.low_battery_threshold = int(os.getenv("LOW_BATTERY_THRESHOLD", s.tracking.low_battery_threshold))
    s.tracking.normal_interval_ms = int(os.getenv("GPS_NORMAL_INTERVAL_MS", s.tracking.normal_interval_ms))
    s.tracking.history_cap = int(os.getenv("LOCATION_HISTORY_CAP", s.tracking.history_cap))

    # 저장소
    s.storage.backend = os.getenv("STORAGE_BACKEND", s.storage.backend)
    s.storage.path = os.getenv("STORAGE_PATH", s.storage.path)

    # HA
    s.ha.base_url = os.getenv("HA_BASE_URL", s.ha.base_url)
    s.ha.token = os.getenv("HA_TOKEN", s.ha.token)
    s.ha.entity_id = os.getenv("HA_TRACKER_ENTITY", s.ha.entity_id)
    s.ha.notify_service = os.getenv("HA_NOTIFY_SERVICE", s.ha.notify_service)

    # 경보 피드
    s.alert_feed.enabled = _b("ALERT_FEED_ENABLED", s.alert_feed.enabled)
    s.alert_feed.host = os.getenv("ALERT_MQTT_HOST", s.alert_feed.host)
    s.alert_feed.port = int(os.getenv("ALERT_MQTT_PORT", s.alert_feed.port))
    s.alert_feed.topic = os.getenv("ALERT_TOPIC", s.alert_feed.topic)
    s.alert_feed.username = os.getenv("ALERT_MQTT_USERNAME", s.alert_feed.username)
    s.alert_feed.password = os.getenv("ALERT_MQTT_PASSWORD", s.alert_feed.password)
    s.alert_feed.tls = _b("ALERT_MQTT_TLS", s.alert_feed.tls)
    s.alert_feed.queue_maxsize = int(os.getenv("QUEUE_MAXSIZE", s.alert_feed.queue_maxsize))

    # 관측성
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.http_port = int(os.getenv("METRICS_PORT", s.observability.http_port))
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)

    return s

async def build_store(s: Settings) -> KVStorePort:
    if s.storage.backend == "memory":
        return InMemoryKVStore()
    store = SQLiteKVStore(s.storage.path)
    await store.init()
    return store

def build_session(s: Settings, store: KVStorePort, ha: HAClient) -> EmergencySession:
    """설정으로부터 엔진과 세션을 조립합니다."""
    effects = LoggingDeviceEffects()
    severity = SeverityController(effects)
    history = LocationHistoryRecord(store, cap=s.tracking.history_cap)

    tracker = AdaptiveLocationTracker(
        HomeAssistantLocationSource(ha, s.ha.entity_id),
        history,
        intervals=s.tracking.intervals(),
        low_battery_threshold=s.tracking.low_battery_threshold,
        stationary_threshold_m=s.tracking.stationary_threshold_m,
        fix_timeout_ms=s.tracking.fix_timeout_ms,
        normal_max_age_ms=s.tracking.normal_max_age_ms,
    )
    decisions = AlertDecisionEngine(
        severity,
        decision_log_cap=s.decision_log_cap,
        staleness_window_ms=s.zone_policy.staleness_window_ms,
        stale_radius_multiplier=s.zone_policy.stale_radius_multiplier,
    )
    sos = SOSTransactionEngine(
        tracker, severity, SOSStateRecord(store),
        HomeAssistantNotifier(ha, s.ha.notify_service),
        LoggingCallInitiator(),
        validity_window_ms=s.sos.validity_window_ms,
        gps_timeout_ms=s.sos.gps_timeout_ms,
        emergency_target=s.sos.emergency_target,
        sms_max_retries=s.sos.sms_max_retries,
        sms_backoff_sec=s.sos.sms_backoff_sec,
        call_timeout_sec=s.sos.call_timeout_sec,
        sms_timeout_sec=s.sos.sms_timeout_sec,
    )
    feed = None
    if s.alert_feed.enabled:
        feed = MqttAlertFeed(
            host=s.alert_feed.host,
            port=s.alert_feed.port,
            topic=s.alert_feed.topic,
            username=s.alert_feed.username,
            password=s.alert_feed.password,
            tls=s.alert_feed.tls,
            client_id=s.alert_feed.client_id,
            keepalive=s.alert_feed.keepalive,
        )
    return EmergencySession(feed, decisions, tracker, sos,
                            queue_maxsize=s.alert_feed.queue_maxsize)

async def start_http(settings: Settings, session: EmergencySession) -> Optional[asyncio.Task]:
    if not settings.observability.metrics_enabled: return None
    app = create_app(settings, session)
    return asyncio.create_task(uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=settings.observability.http_port, log_level="info")
    ).serve())

async def main():
    # 로거 초기화 (환경변수 LOG_LEVEL 우선, 없으면 설정 사용)
    s = build_settings()
    setup_logging_dev(s.observability.log_level)
    log = get_logger("sentinelnet.main")
    log.info("설정 로드 완료")

    store = await build_store(s)
    log.info("저장소 준비 완료", backend=s.storage.backend)

    ha = HAClient(base_url=s.ha.base_url, token=s.ha.token, timeout=s.ha.timeout_sec)
    mobile_services = await ha.list_notify_mobile_services()
    if mobile_services and s.ha.notify_service not in mobile_services:
        log.warning("설정된 notify 서비스가 모바일 앱 목록에 없음",
                    notify_service=s.ha.notify_service, available=mobile_services)

    session = build_session(s, store, ha)
    log.info("긴급 대응 세션 생성 완료")

    http_task = await start_http(s, session)
    if http_task:
        log.info("HTTP 서버 시작됨")

    stop = asyncio.Future()
    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
            except NotImplementedError: pass
    except RuntimeError: pass

    session_task = asyncio.create_task(session.start())
    await stop
    if session.feed is not None:
        await session.feed.stop()
    await session.shutdown()
    session_task.cancel()
    if http_task: http_task.cancel()
    await ha.close()
    log.info("종료 완료")

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
