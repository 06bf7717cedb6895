"""
仪表盘统计路由 (Dashboard Stats Router)

汇总服务状态分布（按各服务最新探测结果）、平均响应时间、24h 可用率和最近 24h 通知数。
没有数据时对应字段为 null 或 0，而不是报错。
"""
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.notification import FAILED, Notification
from app.models.service import Service
from app.models.user import User
from app.schemas.dashboard import DashboardStats, NotificationCounts, ServiceStatusCounts
from app.services import metric_store

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    now = datetime.now(timezone.utc)

    total = (await db.execute(select(func.count(Service.id)))).scalar() or 0
    latest = await metric_store.get_latest_metrics(db)
    counts = ServiceStatusCounts(total=total)
    for metric in latest.values():
        setattr(counts, metric.status, getattr(counts, metric.status) + 1)
    counts.unknown = max(total - len(latest), 0)

    response_times = [m.response_time_ms for m in latest.values() if m.response_time_ms is not None]
    avg_response = round(sum(response_times) / len(response_times), 1) if response_times else None

    since = now - timedelta(hours=24)
    sent = (await db.execute(
        select(func.count(Notification.id)).where(Notification.created_at >= since)
    )).scalar() or 0
    failed = (await db.execute(
        select(func.count(Notification.id)).where(Notification.created_at >= since, Notification.status == FAILED)
    )).scalar() or 0

    return DashboardStats(
        services=counts,
        avg_response_time_ms=avg_response,
        uptime_percent_24h=await metric_store.calc_uptime(db, hours=24),
        notifications=NotificationCounts(last_24h=sent, failed_24h=failed),
        timestamp=now,
    )
