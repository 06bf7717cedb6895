"""
PulseWatch 后端应用入口模块 (PulseWatch Backend Application Entry Module)

Web 服务监控平台的主应用入口，负责 FastAPI 应用的生命周期管理：
创建数据库、Redis、HTTP 客户端和事件广播器并挂到 ``app.state``，
组装探测器、告警评估器、通知分发器和调度器，启动后台任务。

Main application entry point. The lifespan creates the database, Redis client,
HTTP client and event broadcaster on ``app.state``, wires the prober,
evaluator, dispatcher and scheduler, and starts the background tasks.

主要功能 (Main Features):
- 数据库表自动创建 (Automatic table creation)
- 健康检查调度：探测 → 告警评估 → 通知分发 (Health check scheduling)
- 探测结果和日志按保留期清理 (Retention cleanup)
- WebSocket 实时推送 (Real-time push via WebSocket)
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import settings as app_settings
from app.core.database import Database
from app.core.exceptions import register_exception_handlers
from app.core.redis import close_redis, create_redis
# 导入所有模型以确保 SQLAlchemy 表注册 (Import all models to ensure SQLAlchemy table registration)
from app.models import AlertRule, Notification, Service, ServiceLog, ServiceMetric, User  # noqa: F401
from app.routers import (
    alert_rules,
    auth,
    dashboard,
    dashboard_ws,
    health_checks,
    logs,
    metrics,
    notifications,
    services,
)
from app.services.broadcaster import EventBroadcaster
from app.tasks.health_check_scheduler import build_monitor, create_http_client
from app.tasks.metric_cleanup import metric_cleanup_loop

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理器 (Application Lifecycle Manager)

    启动时创建共享资源和后台任务，关闭时按相反顺序取消任务并释放连接。
    """
    database = Database(app_settings.database_url)
    await database.create_all()
    redis_client = create_redis(app_settings.redis_url)
    http_client = create_http_client(app_settings)
    broadcaster = EventBroadcaster()

    scheduler = build_monitor(app_settings, database, http_client, broadcaster, redis_client)

    app.state.database = database
    app.state.redis = redis_client
    app.state.http_client = http_client
    app.state.broadcaster = broadcaster
    app.state.scheduler = scheduler
    app.state.prober = scheduler.prober
    app.state.dispatcher = scheduler.dispatcher

    # 启动后台定时任务 (Start background scheduled tasks)
    tasks = []
    if app_settings.scheduler_enabled:
        tasks.append(asyncio.create_task(scheduler.run_forever()))
    else:
        logger.info("Health check scheduler disabled")
    tasks.append(asyncio.create_task(metric_cleanup_loop(
        database.session_factory,
        app_settings.metric_retention_days,
        app_settings.log_retention_days,
    )))

    yield

    # 关闭阶段：取消后台任务并释放资源 (Shutdown: cancel tasks and release resources)
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    await http_client.aclose()
    await close_redis(redis_client)
    await database.dispose()


app = FastAPI(
    title="PulseWatch",
    description="Web service health monitoring and alerting | Web 服务健康监控与告警",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if app_settings.environment != "production" else [],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# 注册所有 API 路由模块 (Register all API router modules)
app.include_router(auth.router)  # 用户认证 (User authentication)
app.include_router(services.router)  # 服务注册与状态 (Services)
app.include_router(metrics.router)  # 探测指标 (Probe metrics)
app.include_router(alert_rules.router)  # 告警规则 (Alert rules)
app.include_router(notifications.router)  # 通知记录 (Notifications)
app.include_router(health_checks.router)  # 手动触发检查 (Manual tick trigger)
app.include_router(logs.router)  # 活动日志 (Activity logs)
app.include_router(dashboard.router)  # 仪表盘数据 (Dashboard data)
app.include_router(dashboard_ws.router)  # 仪表盘 WebSocket (Dashboard WebSocket)


@app.get("/health")
@app.get("/api/v1/health")
async def health(request: Request):
    """
    健康检查接口 (Health Check Endpoint)

    检查 API、数据库和 Redis 的连通性，任一组件异常时整体状态为 degraded。
    """
    checks = {"api": "ok"}
    try:
        async with request.app.state.database.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception:
        checks["database"] = "error"

    try:
        await request.app.state.redis.ping()
        checks["redis"] = "ok"
    except Exception:
        checks["redis"] = "error"

    status = "ok" if all(v == "ok" for v in checks.values()) else "degraded"
    return {
        "status": status,
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
