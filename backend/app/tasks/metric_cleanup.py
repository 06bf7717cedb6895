"""
数据清理任务模块。

定期删除超过保留期限的探测结果和活动日志，防止数据无限增长。
探测结果默认保留 30 天，活动日志默认保留 7 天。
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.metric_store import prune_logs, prune_metrics

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL = 3600  # 每小时执行一次


async def prune_expired(
    session_factory: async_sessionmaker[AsyncSession],
    metric_days: int,
    log_days: int,
) -> dict:
    """执行一次清理，返回各表删除条数。"""
    async with session_factory() as db:
        metrics_deleted = await prune_metrics(db, metric_days)
        logs_deleted = await prune_logs(db, log_days)
    if metrics_deleted or logs_deleted:
        logger.info(
            f"Cleanup: deleted {metrics_deleted} metrics older than {metric_days} days, "
            f"{logs_deleted} logs older than {log_days} days"
        )
    return {"metrics_deleted": metrics_deleted, "logs_deleted": logs_deleted}


async def metric_cleanup_loop(
    session_factory: async_sessionmaker[AsyncSession],
    metric_days: int = 30,
    log_days: int = 7,
):
    """清理后台循环，出错只记录日志，下一轮继续。"""
    logger.info(f"Starting cleanup loop: metrics {metric_days} days, logs {log_days} days")
    while True:
        try:
            await prune_expired(session_factory, metric_days, log_days)
        except Exception as e:
            logger.exception(f"Cleanup error: {e}")
        await asyncio.sleep(CLEANUP_INTERVAL)
