"""
活动日志路由

查询最近的服务活动日志（服务增删改、探测失败等）。
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.user import User
from app.schemas.log import ServiceLogResponse
from app.services.service_log import list_logs

router = APIRouter(prefix="/api/v1/logs", tags=["logs"])


@router.get("", response_model=list[ServiceLogResponse])
async def recent_logs(
    limit: int = Query(50, ge=1, le=500),
    service_id: Optional[int] = None,
    level: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_logs(db, limit=limit, service_id=service_id, level=level)
