"""
探测结果存储 (Metric Store)

ServiceMetric 的追加写入和查询。记录只插入不修改，按保留期清理。

Append-only persistence and queries for probe results, plus age-based pruning
of metrics and activity logs.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.service import STATUS_ONLINE, ServiceMetric
from app.models.service_log import ServiceLog

if TYPE_CHECKING:
    from app.services.prober import ProbeOutcome

logger = logging.getLogger(__name__)


def record_metric(db: AsyncSession, outcome: ProbeOutcome) -> ServiceMetric:
    """把一次探测结果加入会话，由调用方统一提交 (Add one probe result; the caller commits)."""
    metric = ServiceMetric(
        service_id=outcome.service_id,
        status=outcome.status,
        response_time_ms=outcome.response_time_ms,
        status_code=outcome.status_code,
        cpu_usage=outcome.cpu_usage,
        memory_usage=outcome.memory_usage,
        load_simulated=outcome.load_simulated,
        error=outcome.error[:500] if outcome.error else None,
        checked_at=outcome.checked_at,
    )
    db.add(metric)
    return metric


async def get_latest_metric(db: AsyncSession, service_id: int) -> Optional[ServiceMetric]:
    result = await db.execute(
        select(ServiceMetric)
        .where(ServiceMetric.service_id == service_id)
        .order_by(ServiceMetric.checked_at.desc(), ServiceMetric.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_latest_metrics(db: AsyncSession) -> dict[int, ServiceMetric]:
    """
    每个服务最新的一条探测结果 (Latest probe result per service)

    子查询取每个服务的最大 checked_at 再关联回原表；同一时间戳有多条时取 id 最大的一条。
    """
    latest = (
        select(
            ServiceMetric.service_id,
            func.max(ServiceMetric.checked_at).label("max_checked"),
        )
        .group_by(ServiceMetric.service_id)
        .subquery()
    )
    result = await db.execute(
        select(ServiceMetric)
        .join(
            latest,
            and_(
                ServiceMetric.service_id == latest.c.service_id,
                ServiceMetric.checked_at == latest.c.max_checked,
            ),
        )
        .order_by(ServiceMetric.id)
    )
    # 按 id 升序覆盖，最终保留的是同一时间戳下 id 最大的记录
    return {m.service_id: m for m in result.scalars().all()}


async def get_metric_history(
    db: AsyncSession,
    service_id: Optional[int] = None,
    hours: int = 24,
    limit: int = 500,
) -> list[ServiceMetric]:
    """最近 hours 小时内的探测结果，按时间倒序 (Newest first)."""
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    q = select(ServiceMetric).where(ServiceMetric.checked_at >= since)
    if service_id is not None:
        q = q.where(ServiceMetric.service_id == service_id)
    q = q.order_by(ServiceMetric.checked_at.desc(), ServiceMetric.id.desc()).limit(limit)
    result = await db.execute(q)
    return list(result.scalars().all())


async def calc_uptime(db: AsyncSession, service_id: Optional[int] = None, hours: int = 24) -> Optional[float]:
    """计算可用率（online 样本占比），无样本时返回 None。"""
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    filters = [ServiceMetric.checked_at >= since]
    if service_id is not None:
        filters.append(ServiceMetric.service_id == service_id)

    total = (await db.execute(
        select(func.count(ServiceMetric.id)).where(*filters)
    )).scalar() or 0
    if total == 0:
        return None
    online = (await db.execute(
        select(func.count(ServiceMetric.id)).where(*filters, ServiceMetric.status == STATUS_ONLINE)
    )).scalar() or 0
    return round(online / total * 100, 2)


async def calc_uptime_by_service(db: AsyncSession, hours: int = 24) -> dict[int, float]:
    """一次分组查询算出每个服务的可用率，没有样本的服务不在结果中。"""
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    result = await db.execute(
        select(
            ServiceMetric.service_id,
            func.count(ServiceMetric.id).label("total"),
            func.sum(case((ServiceMetric.status == STATUS_ONLINE, 1), else_=0)).label("online"),
        )
        .where(ServiceMetric.checked_at >= since)
        .group_by(ServiceMetric.service_id)
    )
    return {
        row.service_id: round((row.online or 0) / row.total * 100, 2)
        for row in result.all()
        if row.total
    }


async def prune_metrics(db: AsyncSession, retention_days: int) -> int:
    """删除超过保留期的探测结果，返回删除条数。"""
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    result = await db.execute(delete(ServiceMetric).where(ServiceMetric.checked_at < cutoff))
    await db.commit()
    return result.rowcount or 0


async def prune_logs(db: AsyncSession, retention_days: int) -> int:
    """删除超过保留期的活动日志，返回删除条数。"""
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    result = await db.execute(delete(ServiceLog).where(ServiceLog.created_at < cutoff))
    await db.commit()
    return result.rowcount or 0
