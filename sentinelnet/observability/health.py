"""
HTTP endpoints for SentinelNet observability.

This module implements health, readiness, metrics, and info endpoints,
plus read-only views of the SOS state and the decision log.
"""

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response, JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import time
from typing import Optional, TYPE_CHECKING
from sentinelnet.settings import Settings
from sentinelnet.observability.logging_setup import get_logger

if TYPE_CHECKING:
    from sentinelnet.orchestrators.session import EmergencySession

log = get_logger("sentinelnet.http")

def create_app(settings: Settings, session: Optional["EmergencySession"] = None) -> FastAPI:
    """
    FastAPI 애플리케이션을 생성합니다.

    Args:
        settings: 애플리케이션 설정
        session: 상태 조회 대상 세션 (없으면 기본 응답)
    """
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="SentinelNet Emergency Response Service"
    )

    start_time = time.time()

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트"""
        if session is None:
            return JSONResponse({"status": "not_ready", "reason": "session not attached"},
                                status_code=503)
        return JSONResponse({
            "status": "ready",
            "service": settings.observability.service_name,
            "tracking": session.tracker.is_tracking,
            "timestamp": time.time()
        })

    @app.get("/metrics")
    async def metrics():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")

        try:
            return Response(
                generate_latest(),
                media_type=CONTENT_TYPE_LATEST
            )
        except Exception as e:
            log.error(f"메트릭 생성 오류: {e}")
            raise HTTPException(status_code=500, detail="Metrics generation failed")

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level
        })

    @app.get("/sos/state")
    async def sos_state():
        """현재 SOS 상태"""
        if session is None:
            return JSONResponse({"phase": "IDLE"})
        return JSONResponse(session.sos.state.model_dump(mode="json"))

    @app.get("/decisions")
    async def decisions():
        """최근 경보 결정 로그 (발생 순서)"""
        if session is None:
            return JSONResponse([])
        return JSONResponse([d.model_dump(mode="json") for d in session.decisions.decision_log])

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info",
                "sos_state": "/sos/state",
                "decisions": "/decisions"
            }
        })

    return app
