"""
探测指标路由

跨服务查询最新探测结果和历史记录。
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.models.user import User
from app.schemas.service import ServiceMetricResponse
from app.services import metric_store

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])


@router.get("/latest", response_model=list[ServiceMetricResponse])
async def latest_metrics(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """每个服务最新的一条探测结果，尚未探测过的服务不出现在结果中。"""
    latest = await metric_store.get_latest_metrics(db)
    return [latest[k] for k in sorted(latest)]


@router.get("/history", response_model=list[ServiceMetricResponse])
async def metric_history(
    service_id: Optional[int] = None,
    hours: int = Query(24, ge=1, le=720),
    limit: int = Query(500, ge=1, le=5000),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await metric_store.get_metric_history(db, service_id=service_id, hours=hours, limit=limit)
