"""
服务监控路由

提供服务的增删改查、最新状态、24h 可用率、探测历史和手动探测接口。
没有任何探测记录的服务返回 status="unknown"、latest_metric=null，
与后端错误（统一错误体）区分开。
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user, get_editor_user, get_prober
from app.models.service import Service
from app.models.user import User
from app.schemas.service import (
    ServiceCreate,
    ServiceMetricResponse,
    ServiceResponse,
    ServiceStatusResponse,
    ServiceUpdate,
)
from app.services import metric_store, registry
from app.services.prober import HealthProber

router = APIRouter(prefix="/api/v1/services", tags=["services"])


def _with_status(service: Service, latest, uptime) -> ServiceStatusResponse:
    """附加最新探测结果和 24h 可用率，没有样本时保持 unknown。"""
    item = ServiceStatusResponse.model_validate(service)
    if latest is not None:
        item.status = latest.status
        item.latest_metric = ServiceMetricResponse.model_validate(latest)
    item.uptime_percent = uptime
    return item


@router.get("", response_model=list[ServiceStatusResponse])
async def list_services(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    services = await registry.list_services(db)
    latest = await metric_store.get_latest_metrics(db)
    uptime = await metric_store.calc_uptime_by_service(db)
    return [_with_status(s, latest.get(s.id), uptime.get(s.id)) for s in services]


@router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    data: ServiceCreate,
    user: User = Depends(get_editor_user),
    db: AsyncSession = Depends(get_db),
):
    return await registry.create_service(db, user, data.name, data.url)


@router.get("/{service_id}", response_model=ServiceStatusResponse)
async def get_service(
    service_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = await registry.get_service(db, service_id)
    latest = await metric_store.get_latest_metric(db, service_id)
    uptime = await metric_store.calc_uptime(db, service_id)
    return _with_status(service, latest, uptime)


@router.put("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    user: User = Depends(get_editor_user),
    db: AsyncSession = Depends(get_db),
):
    return await registry.update_service(db, service_id, name=data.name, url=data.url)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service_id: int,
    user: User = Depends(get_editor_user),
    db: AsyncSession = Depends(get_db),
):
    """删除服务，探测结果、告警规则、通知和日志一并级联删除。"""
    await registry.delete_service(db, service_id)


@router.get("/{service_id}/metrics", response_model=list[ServiceMetricResponse])
async def get_service_metrics(
    service_id: int,
    hours: int = Query(24, ge=1, le=720),
    limit: int = Query(500, ge=1, le=5000),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """获取服务最近 N 小时的探测历史，按时间倒序。"""
    await registry.get_service(db, service_id)
    return await metric_store.get_metric_history(db, service_id=service_id, hours=hours, limit=limit)


@router.post("/{service_id}/check", response_model=ServiceMetricResponse)
async def check_service(
    service_id: int,
    user: User = Depends(get_editor_user),
    db: AsyncSession = Depends(get_db),
    prober: HealthProber = Depends(get_prober),
):
    """立即探测单个服务并记录结果，不评估告警规则。"""
    service = await registry.get_service(db, service_id)
    return await prober.check_service(db, service)
