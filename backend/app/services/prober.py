"""
健康探测器 (Health Prober)

对注册的服务 URL 发送 HTTP GET，根据状态码判断服务状态，记录响应时间，
每次探测写入一条 ServiceMetric。

状态判定：
- 2xx / 3xx → online（不跟随重定向，3xx 按原样判定）
- 4xx       → degraded（服务可达但拒绝请求）
- 5xx、超时、网络错误 → offline

CPU / 内存不是从目标服务采集的。开启 simulated_load_enabled 后，按响应延迟推算
一组模拟值并标记 load_simulated，默认关闭时两项为空。
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.service import STATUS_DEGRADED, STATUS_OFFLINE, STATUS_ONLINE, Service, ServiceMetric
from app.services.broadcaster import METRICS_UPDATE, EventBroadcaster
from app.services.metric_store import record_metric
from app.services.registry import list_all_services
from app.services.service_log import append_log

logger = logging.getLogger(__name__)


def classify_status(status_code: Optional[int]) -> str:
    """根据 HTTP 状态码判定服务状态，没有响应时为 offline。"""
    if status_code is None:
        return STATUS_OFFLINE
    if 200 <= status_code < 400:
        return STATUS_ONLINE
    if 400 <= status_code < 500:
        return STATUS_DEGRADED
    return STATUS_OFFLINE


def simulate_load(latency_ms: int, rng: random.Random) -> tuple[float, float]:
    """
    由响应延迟推算模拟的 CPU 和内存占用，返回 (cpu, memory)。

    延迟越高占用越高，延迟因子封顶为 2，两项都不超过 95。
    """
    factor = min(latency_ms / 1000, 2)
    base_memory = 40 + rng.random() * 30
    base_cpu = 20 + rng.random() * 60
    memory = min(95.0, base_memory + factor * 10)
    cpu = min(95.0, base_cpu + factor * 15)
    return float(round(cpu)), float(round(memory))


@dataclass
class ProbeOutcome:
    """一次探测的结果 (Result of one probe, before it is persisted)"""
    service_id: int
    service_name: str
    url: str
    status: str
    response_time_ms: Optional[int] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    cpu_usage: Optional[float] = None
    memory_usage: Optional[float] = None
    load_simulated: bool = False
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def metric_payload(metric: ServiceMetric, service_name: Optional[str] = None) -> dict:
    """ServiceMetric 转为可 JSON 序列化的推送数据。"""
    return {
        "id": metric.id,
        "service_id": metric.service_id,
        "service_name": service_name,
        "status": metric.status,
        "response_time_ms": metric.response_time_ms,
        "status_code": metric.status_code,
        "cpu_usage": metric.cpu_usage,
        "memory_usage": metric.memory_usage,
        "load_simulated": metric.load_simulated,
        "error": metric.error,
        "checked_at": metric.checked_at.isoformat() if metric.checked_at else None,
    }


class HealthProber:
    """
    健康探测器 (Health Prober)

    共享一个 httpx.AsyncClient，由应用生命周期创建后注入。client 必须以
    follow_redirects=False 创建，探测总时长由 asyncio.wait_for 限定。
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        broadcaster: Optional[EventBroadcaster] = None,
        timeout: float = 10.0,
        concurrency: int = 20,
        simulated_load: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.session_factory = session_factory
        self.broadcaster = broadcaster
        self.timeout = timeout
        self.concurrency = max(1, concurrency)
        self.simulated_load = simulated_load
        self.rng = rng or random.Random()

    def _elapsed_ms(self, start: float) -> int:
        return int(round((time.monotonic() - start) * 1000))

    async def probe(self, service: Service) -> ProbeOutcome:
        """探测单个服务，不抛出异常，所有失败都体现为 offline 结果。"""
        outcome = ProbeOutcome(
            service_id=service.id, service_name=service.name, url=service.url, status=STATUS_OFFLINE
        )
        timeout_ms = int(self.timeout * 1000)
        start = time.monotonic()
        try:
            resp = await asyncio.wait_for(self.client.get(service.url), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            outcome.error = f"Timeout after {self.timeout:g}s" + (f": {e}" if str(e) else "")
            logger.debug(f"Probe timeout for {service.url}")
            return outcome
        except Exception as e:
            elapsed = self._elapsed_ms(start)
            outcome.response_time_ms = elapsed if elapsed < timeout_ms else None
            outcome.error = (str(e) or e.__class__.__name__)[:500]
            logger.debug(f"Probe failed for {service.url}: {outcome.error}")
            return outcome

        elapsed = self._elapsed_ms(start)
        outcome.response_time_ms = elapsed
        outcome.status_code = resp.status_code
        outcome.status = classify_status(resp.status_code)
        if outcome.status == STATUS_OFFLINE:
            outcome.error = f"HTTP {resp.status_code}"
        elif self.simulated_load:
            outcome.cpu_usage, outcome.memory_usage = simulate_load(elapsed, self.rng)
            outcome.load_simulated = True
        return outcome

    def _persist(self, db: AsyncSession, outcome: ProbeOutcome) -> ServiceMetric:
        metric = record_metric(db, outcome)
        if outcome.status == STATUS_OFFLINE and outcome.error:
            append_log(
                db, "error", f"{outcome.service_name} health check failed: {outcome.error}",
                service_id=outcome.service_id,
            )
        return metric

    async def check_service(self, db: AsyncSession, service: Service) -> ServiceMetric:
        """探测单个服务并写入一条探测结果 (Probe one service and persist exactly one result)."""
        outcome = await self.probe(service)
        metric = self._persist(db, outcome)
        await db.commit()
        await db.refresh(metric)
        if self.broadcaster is not None:
            await self.broadcaster.publish(METRICS_UPDATE, [metric_payload(metric, service.name)])
        return metric

    async def _guarded_probe(self, sem: asyncio.Semaphore, service: Service) -> ProbeOutcome:
        async with sem:
            try:
                return await self.probe(service)
            except Exception as e:
                logger.exception(f"Unexpected probe failure for service {service.id}")
                return ProbeOutcome(
                    service_id=service.id,
                    service_name=service.name,
                    url=service.url,
                    status=STATUS_OFFLINE,
                    error=f"Check failed: {e}"[:500],
                )

    async def check_all_services(self) -> list[ServiceMetric]:
        """
        探测所有服务 (Probe every registered service)

        并发探测，并发数受 probe_concurrency 限制；单个服务失败不影响其他服务。
        结果在同一会话中写入后广播 metrics-update 事件。读取服务列表或写库失败时
        记录日志并返回空列表，不向调用方抛出。
        """
        try:
            async with self.session_factory() as db:
                services = await list_all_services(db)
        except Exception:
            logger.exception("Failed to load services for health check")
            return []
        if not services:
            return []

        sem = asyncio.Semaphore(self.concurrency)
        outcomes = await asyncio.gather(*(self._guarded_probe(sem, s) for s in services))

        try:
            async with self.session_factory() as db:
                metrics = [self._persist(db, o) for o in outcomes]
                await db.commit()
        except Exception:
            logger.exception("Failed to persist health check results")
            return []

        offline = sum(1 for m in metrics if m.status == STATUS_OFFLINE)
        logger.info(f"Checked {len(metrics)} services, {offline} offline")

        if self.broadcaster is not None:
            names = {o.service_id: o.service_name for o in outcomes}
            await self.broadcaster.publish(
                METRICS_UPDATE, [metric_payload(m, names.get(m.service_id)) for m in metrics]
            )
        return metrics
