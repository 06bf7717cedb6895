"""
健康检查触发路由

手动执行一次完整 tick（探测所有服务 → 评估规则 → 分发通知）。
已有 tick 在执行时返回 409。
"""
from fastapi import APIRouter, Depends

from app.core.deps import get_editor_user, get_scheduler
from app.core.exceptions import ConflictError
from app.models.user import User
from app.tasks.health_check_scheduler import HealthCheckScheduler

router = APIRouter(prefix="/api/v1/health-checks", tags=["health-checks"])


@router.post("/trigger")
async def trigger_health_check(
    _user: User = Depends(get_editor_user),
    scheduler: HealthCheckScheduler = Depends(get_scheduler),
):
    if scheduler.is_running:
        raise ConflictError("A health check tick is already running")
    result = await scheduler.run_tick()
    if result is None:
        raise ConflictError("A health check tick is already running")
    return {
        "checked": len(result.metrics),
        "triggered": result.triggered,
        "notifications": len(result.notifications),
        "dispatch_failures": result.dispatch_failures,
        "started_at": result.started_at,
        "finished_at": result.finished_at,
    }
