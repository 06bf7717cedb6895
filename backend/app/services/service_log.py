"""
服务活动日志记录 (Service Activity Log Recorder)

供注册表和探测器调用的统一日志写入接口。只把记录加入会话，
由调用方在同一事务中提交，保证日志与业务变更一起落库或一起回滚。

Adds an activity log row to the caller's session. The caller commits, so the
log entry lands in the same transaction as the change it describes.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.service_log import LOG_LEVELS, ServiceLog


def append_log(
    db: AsyncSession,
    level: str,
    message: str,
    service_id: Optional[int] = None,
) -> ServiceLog:
    """
    追加一条活动日志 (Append one activity log entry)

    Args:
        db: 调用方的会话，不在此处提交
        level: info / warning / error
        message: 日志正文
        service_id: 关联服务，可为空
    """
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    entry = ServiceLog(service_id=service_id, level=level, message=message)
    db.add(entry)
    return entry


async def list_logs(
    db: AsyncSession,
    limit: int = 50,
    service_id: Optional[int] = None,
    level: Optional[str] = None,
) -> list[ServiceLog]:
    """按时间倒序查询最近的活动日志。"""
    q = select(ServiceLog)
    if service_id is not None:
        q = q.where(ServiceLog.service_id == service_id)
    if level:
        q = q.where(ServiceLog.level == level)
    q = q.order_by(ServiceLog.created_at.desc(), ServiceLog.id.desc()).limit(limit)
    result = await db.execute(q)
    return list(result.scalars().all())
