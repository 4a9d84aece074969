"""
Adaptive location tracker for SentinelNet.

Polling cadence adapts to context, in strict precedence:

    SOS active              -> 3 s   (life safety overrides power saving)
    low power / battery<15% -> 60 s
    stationary (< 5 m)      -> 120 s
    default                 -> 15 s

Every fix is persisted to the bounded location history before it is
delivered, so the last known position survives a crash. Each tracker
instance owns its own subscription and last fixes; nothing is shared
at module level.
"""

import asyncio
from typing import Any, Callable, Dict, Optional, Union
from sentinelnet.adapters.storage.records import LocationHistoryRecord
from sentinelnet.common.clock import now_ms
from sentinelnet.core.errors import LocationUnavailableError
from sentinelnet.core.geo import distance_meters
from sentinelnet.core.models import LocationFix, TrackingContext, WatchOptions
from sentinelnet.observability import metrics
from sentinelnet.observability.logging_setup import get_logger
from sentinelnet.ports.location import LocationSourcePort

log = get_logger("sentinelnet.tracker")

GPS_INTERVALS = {
    "aggressive": 3000,      # SOS 중
    "normal": 15000,         # 기본
    "conservative": 60000,   # 저전력/배터리 부족
    "stationary": 120000,    # 이동 없음
}

LOW_BATTERY_THRESHOLD = 15
STATIONARY_THRESHOLD_M = 5.0
FIX_TIMEOUT_MS = 10000
NORMAL_MAX_AGE_MS = 30000

OnLocation = Callable[[LocationFix], Any]
OnError = Callable[[str], Any]


class AdaptiveLocationTracker:
    """적응형 위치 추적기"""

    def __init__(self,
                 source: LocationSourcePort,
                 history: LocationHistoryRecord,
                 *,
                 intervals: Optional[Dict[str, int]] = None,
                 low_battery_threshold: float = LOW_BATTERY_THRESHOLD,
                 stationary_threshold_m: float = STATIONARY_THRESHOLD_M,
                 fix_timeout_ms: int = FIX_TIMEOUT_MS,
                 normal_max_age_ms: int = NORMAL_MAX_AGE_MS,
                 clock: Callable[[], int] = now_ms):
        """
        초기화합니다.

        Args:
            source: 위치 소스 포트
            history: 위치 이력 레코드 (이 추적기만 기록함)
            intervals: 주기 테이블 재정의
            low_battery_threshold: 배터리 부족 기준 (%)
            stationary_threshold_m: 정지 판정 거리 (미터)
            fix_timeout_ms: 측위 타임아웃 (ms)
            normal_max_age_ms: 비 SOS 시 허용 캐시 위치 나이 (ms)
            clock: 현재 시각(epoch ms) 제공 함수
        """
        self.source = source
        self.history = history
        self.intervals = {**GPS_INTERVALS, **(intervals or {})}
        self.low_battery_threshold = low_battery_threshold
        self.stationary_threshold_m = stationary_threshold_m
        self.fix_timeout_ms = fix_timeout_ms
        self.normal_max_age_ms = normal_max_age_ms
        self.clock = clock

        self.context = TrackingContext()
        self.current_interval_ms = self.intervals["normal"]
        self._task: Optional[asyncio.Task] = None
        self._on_location: Optional[OnLocation] = None
        self._on_error: Optional[OnError] = None
        self._last_fix: Optional[LocationFix] = None
        self._previous_fix: Optional[LocationFix] = None

    @property
    def is_tracking(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def latest_fix(self) -> Optional[LocationFix]:
        """가장 최근에 전달된 위치"""
        return self._last_fix

    def is_stationary(self) -> bool:
        """최근 두 위치가 임계 거리 이내이면 정지 상태로 판단합니다."""
        if self._last_fix is None or self._previous_fix is None:
            return False
        return distance_meters(self._previous_fix, self._last_fix) < self.stationary_threshold_m

    def optimal_interval_ms(self, context: Optional[TrackingContext] = None) -> int:
        """
        컨텍스트에 따른 최적 폴링 주기를 계산합니다.

        Args:
            context: 추적 컨텍스트 (None이면 현재 컨텍스트)

        Returns:
            폴링 주기 (ms)
        """
        ctx = context or self.context

        if ctx.sos_active:
            return self.intervals["aggressive"]

        low_battery = (ctx.battery_level is not None
                       and ctx.battery_level < self.low_battery_threshold)
        if ctx.low_power_mode or low_battery:
            return self.intervals["conservative"]

        if self.is_stationary():
            return self.intervals["stationary"]

        return self.intervals["normal"]

    def watch_options(self, context: Optional[TrackingContext] = None) -> WatchOptions:
        """컨텍스트에서 구독 옵션을 만듭니다."""
        ctx = context or self.context
        return WatchOptions(
            high_accuracy=not ctx.low_power_mode,
            timeout_ms=self.fix_timeout_ms,
            max_fix_age_ms=0 if ctx.sos_active else self.normal_max_age_ms,
            interval_ms=self.optimal_interval_ms(ctx),
        )

    async def _prime(self) -> Optional[LocationFix]:
        # 저장된 이력에서 최근 두 위치를 복원
        history = await self.history.load()
        if history:
            self._last_fix = history[-1]
            self._previous_fix = history[-2] if len(history) > 1 else None
            return history[-1]
        return None

    async def start(self,
                    on_location: OnLocation,
                    on_error: Optional[OnError] = None,
                    context: Optional[TrackingContext] = None) -> None:
        """
        적응형 위치 추적을 시작합니다.

        마지막으로 알려진 위치가 있으면 즉시 재전달한 뒤 연속 구독을 시작합니다.

        Args:
            on_location: 위치 콜백
            on_error: 오류 콜백 (대체 위치가 없을 때만 호출)
            context: 추적 컨텍스트
        """
        if self.is_tracking:
            await self.stop()

        self._on_location = on_location
        self._on_error = on_error
        if context is not None:
            self.context = context

        recovered = await self._prime()
        if recovered is not None:
            log.info("마지막 위치 복원됨",
                     latitude=recovered.latitude,
                     longitude=recovered.longitude)
            metrics.location_fixes.labels(origin="replay").inc()
            self._deliver(recovered)

        self._subscribe()

    def _subscribe(self) -> None:
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        """
        위치 스트림을 소비합니다.

        위치가 들어와 최적 주기가 바뀌면 (예: 정지 상태 진입) 현재 구독을
        닫고 새 주기로 다시 구독합니다.
        """
        while True:
            options = self.watch_options()
            self.current_interval_ms = options.interval_ms
            metrics.tracking_interval_ms.set(self.current_interval_ms)
            log.info("위치 추적 시작됨",
                     interval_ms=options.interval_ms,
                     sos_active=self.context.sos_active,
                     high_accuracy=options.high_accuracy)

            stream = self.source.watch(options)
            changed = False
            try:
                async for item in stream:
                    if isinstance(item, LocationFix):
                        await self._handle_fix(item)
                    else:
                        await self._handle_error(item)
                    if self.optimal_interval_ms() != options.interval_ms:
                        changed = True
                        break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error("위치 스트림 종료됨", error=str(e))
                await self._handle_error(e)
                return

            if not changed:
                return
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
            self.source.unsubscribe()
            log.info("폴링 주기 변경으로 재구독",
                     previous_ms=options.interval_ms,
                     interval_ms=self.optimal_interval_ms())

    async def _handle_fix(self, fix: LocationFix) -> None:
        if fix.timestamp is None:
            fix = fix.model_copy(update={"timestamp": self.clock()})

        # 콜백 전에 먼저 영속화
        await self.history.append(fix)
        self._previous_fix, self._last_fix = self._last_fix, fix
        metrics.location_fixes.labels(origin="source").inc()
        self._deliver(fix)

    async def _handle_error(self, error: Union[Exception, Any]) -> None:
        log.warning("위치 소스 오류", error=str(error))
        fallback = await self.history.last_known()
        if fallback is not None:
            metrics.location_fixes.labels(origin="fallback").inc()
            self._deliver(fallback)
        elif self._on_error is not None:
            self._on_error(str(error))

    def _deliver(self, fix: LocationFix) -> None:
        if self._on_location is None:
            return
        try:
            self._on_location(fix)
        except Exception as e:
            log.error("위치 콜백 오류", error=str(e))

    async def update_context(self, context: TrackingContext) -> None:
        """
        추적 컨텍스트를 변경합니다. 추적 중이면 새 옵션으로 재구독합니다.

        Args:
            context: 새 추적 컨텍스트
        """
        self.context = context
        if self.is_tracking:
            await self._cancel()
            self._subscribe()

    async def capture_fix(self, timeout_ms: Optional[int] = None) -> LocationFix:
        """
        고정밀 위치를 한 번 측위하고 이력에 기록합니다.

        Args:
            timeout_ms: 대기 한도 (ms), None이면 기본 타임아웃

        Returns:
            측위 결과

        Raises:
            LocationUnavailableError: 측위 실패 또는 타임아웃
        """
        timeout = (timeout_ms or self.fix_timeout_ms) / 1000
        options = WatchOptions(
            high_accuracy=True,
            timeout_ms=timeout_ms or self.fix_timeout_ms,
            max_fix_age_ms=0,
            interval_ms=self.intervals["aggressive"],
        )

        try:
            fix = await asyncio.wait_for(self.source.get_once(options), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise LocationUnavailableError(f"location fix timed out after {timeout:.1f}s") from e
        except LocationUnavailableError:
            raise
        except Exception as e:
            raise LocationUnavailableError(str(e)) from e

        if fix.timestamp is None:
            fix = fix.model_copy(update={"timestamp": self.clock()})
        await self.history.append(fix)
        self._previous_fix, self._last_fix = self._last_fix, fix
        return fix

    async def last_known(self) -> Optional[LocationFix]:
        """저장된 이력의 마지막 위치를 반환합니다."""
        return await self.history.last_known()

    async def _cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.source.unsubscribe()

    async def stop(self) -> None:
        """위치 추적을 중지합니다. 여러 번 호출해도 안전합니다."""
        if self._task is None:
            return
        await self._cancel()
        log.info("위치 추적 중지됨")

    def status(self) -> Dict[str, Any]:
        """현재 추적 상태를 반환합니다."""
        return {
            "is_tracking": self.is_tracking,
            "current_interval_ms": self.current_interval_ms,
            "last_fix": self._last_fix.model_dump() if self._last_fix else None,
        }
