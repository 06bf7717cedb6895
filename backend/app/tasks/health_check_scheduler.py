"""
健康检查调度任务模块。

按固定频率执行 tick：探测所有服务 → 评估告警规则 → 分发通知。

- 单实例内用 asyncio.Lock 防止 tick 重叠，上一个 tick 未结束时新的 tick 直接跳过
- 多实例部署时用 Redis ``SET NX EX`` 锁保证同一时间只有一个实例执行 tick，
  Redis 不可用时记录警告并继续执行；tick 执行期间持锁方定期续期，慢 tick 不会丢锁
- run_forever 每个间隔把 tick 作为独立任务启动，慢 tick 不会拖慢节奏，只会让下一次被跳过
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx
import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import Settings
from app.core.database import Database
from app.models.notification import Notification
from app.models.service import ServiceMetric
from app.services.alert_evaluator import AlertEvaluator
from app.services.broadcaster import EventBroadcaster
from app.services.dispatcher import NotificationDispatcher
from app.services.email_sender import build_email_sender
from app.services.prober import HealthProber

logger = logging.getLogger(__name__)

TICK_LOCK_KEY = "pulsewatch:scheduler:tick"


@dataclass
class TickResult:
    """一次 tick 的执行结果 (Outcome of one tick)"""
    started_at: datetime
    finished_at: Optional[datetime] = None
    metrics: list[ServiceMetric] = field(default_factory=list)
    triggered: int = 0
    notifications: list[Notification] = field(default_factory=list)
    dispatch_failures: int = 0


class HealthCheckScheduler:
    def __init__(
        self,
        prober: HealthProber,
        evaluator: AlertEvaluator,
        dispatcher: NotificationDispatcher,
        redis_client: Optional[redis.Redis] = None,
        interval: float = 60,
        lock_ttl: int = 120,
    ):
        self.prober = prober
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.redis = redis_client
        self.interval = interval
        self.lock_ttl = lock_ttl
        self._lock = asyncio.Lock()
        self._tick_tasks: set[asyncio.Task] = set()
        self.last_result: Optional[TickResult] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def _acquire_cluster_lock(self, token: str) -> bool:
        if self.redis is None:
            return True
        try:
            acquired = await self.redis.set(TICK_LOCK_KEY, token, nx=True, ex=self.lock_ttl)
        except RedisError as e:
            logger.warning(f"Tick lock unavailable, running without it: {e}")
            return True
        return bool(acquired)

    async def _release_cluster_lock(self, token: str) -> None:
        if self.redis is None:
            return
        try:
            # 只释放自己持有的锁，锁过期后被其他实例拿到时不能删
            if await self.redis.get(TICK_LOCK_KEY) == token:
                await self.redis.delete(TICK_LOCK_KEY)
        except RedisError as e:
            logger.warning(f"Failed to release tick lock: {e}")

    async def _keep_cluster_lock(self, token: str) -> None:
        """tick 执行期间每 lock_ttl/3 秒续期一次，锁已不属于自己时停止。"""
        interval = max(self.lock_ttl / 3, 0.01)
        while True:
            await asyncio.sleep(interval)
            try:
                if await self.redis.get(TICK_LOCK_KEY) != token:
                    logger.warning("Tick lock lost before the tick finished")
                    return
                await self.redis.expire(TICK_LOCK_KEY, self.lock_ttl)
            except RedisError as e:
                logger.warning(f"Failed to extend tick lock: {e}")

    async def run_tick(self) -> Optional[TickResult]:
        """
        执行一次完整的检查流程，被跳过时返回 None。

        探测失败由探测器隔离，单条通知分发失败只记录日志，不影响其余通知。
        """
        if self._lock.locked():
            logger.warning("Previous health check tick still running, skipping")
            return None

        async with self._lock:
            token = uuid.uuid4().hex
            if not await self._acquire_cluster_lock(token):
                logger.info("Health check tick held by another instance, skipping")
                return None
            keeper = asyncio.create_task(self._keep_cluster_lock(token)) if self.redis is not None else None
            try:
                return await self._run_pipeline()
            finally:
                if keeper is not None:
                    keeper.cancel()
                    try:
                        await keeper
                    except asyncio.CancelledError:
                        pass
                await self._release_cluster_lock(token)

    async def _run_pipeline(self) -> TickResult:
        result = TickResult(started_at=datetime.now(timezone.utc))
        result.metrics = await self.prober.check_all_services()

        try:
            alerts = await self.evaluator.evaluate(result.metrics)
        except Exception:
            logger.exception("Alert evaluation failed")
            alerts = []
        result.triggered = len(alerts)

        for alert in alerts:
            try:
                notification = await self.dispatcher.dispatch(
                    alert.rule, alert.message, alert.severity, service_name=alert.service_name
                )
            except Exception:
                result.dispatch_failures += 1
                logger.exception(f"Failed to dispatch notification for rule {alert.rule.id}")
                continue
            result.notifications.append(notification)
            await self.evaluator.start_cooldown(alert.rule)

        result.finished_at = datetime.now(timezone.utc)
        elapsed = (result.finished_at - result.started_at).total_seconds()
        logger.info(
            f"Health check tick done in {elapsed:.2f}s: {len(result.metrics)} checks, "
            f"{result.triggered} alerts, {result.dispatch_failures} dispatch failures"
        )
        self.last_result = result
        return result

    async def _safe_tick(self) -> None:
        try:
            await self.run_tick()
        except Exception as e:
            logger.exception(f"Health check tick error: {e}")

    async def run_forever(self) -> None:
        """按固定频率启动 tick，直到被取消。"""
        logger.info(f"Health check scheduler started, interval {self.interval}s")
        try:
            while True:
                task = asyncio.create_task(self._safe_tick())
                self._tick_tasks.add(task)
                task.add_done_callback(self._tick_tasks.discard)
                await asyncio.sleep(self.interval)
        finally:
            for task in list(self._tick_tasks):
                task.cancel()


def build_monitor(
    settings: Settings,
    database: Database,
    http_client: httpx.AsyncClient,
    broadcaster: EventBroadcaster,
    redis_client: Optional[redis.Redis] = None,
) -> HealthCheckScheduler:
    """按配置组装探测器、评估器、分发器和调度器，供应用生命周期和命令行共用。"""
    prober = HealthProber(
        http_client,
        database.session_factory,
        broadcaster=broadcaster,
        timeout=settings.probe_timeout_seconds,
        concurrency=settings.probe_concurrency,
        simulated_load=settings.simulated_load_enabled,
    )
    evaluator = AlertEvaluator(database.session_factory, redis_client)
    dispatcher = NotificationDispatcher(
        database.session_factory,
        broadcaster=broadcaster,
        email_sender=build_email_sender(settings),
        alert_email_to=settings.alert_email_to,
    )
    return HealthCheckScheduler(
        prober,
        evaluator,
        dispatcher,
        redis_client=redis_client,
        interval=settings.check_interval_seconds,
        lock_ttl=settings.scheduler_lock_ttl_seconds,
    )


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """探测专用的 HTTP 客户端，不跟随重定向。"""
    return httpx.AsyncClient(
        timeout=settings.probe_timeout_seconds,
        follow_redirects=False,
        headers={"User-Agent": "PulseWatch-HealthCheck/1.0"},
    )
