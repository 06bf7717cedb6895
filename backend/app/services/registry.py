"""
服务注册表 (Service Registry)

被监控服务的增删改查。每次变更都会追加一条活动日志，并与变更在同一事务中提交。
删除服务时其探测结果、告警规则（及规则的通知）和日志由外键级联删除。

CRUD over monitored services. Every mutation appends an activity log entry in
the same transaction. Deleting a service cascades through foreign keys to its
metrics, alert rules (and their notifications) and logs.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.service import Service
from app.models.user import User
from app.services.service_log import append_log

logger = logging.getLogger(__name__)


async def create_service(db: AsyncSession, owner: User, name: str, url: str) -> Service:
    service = Service(name=name, url=url, owner_id=owner.id)
    db.add(service)
    await db.flush()
    append_log(db, "info", f"Service created: {name} ({url})", service_id=service.id)
    await db.commit()
    await db.refresh(service)
    logger.info(f"Service {service.id} created by user {owner.id}: {url}")
    return service


async def list_services(db: AsyncSession) -> list[Service]:
    """按创建时间倒序列出所有服务。"""
    result = await db.execute(select(Service).order_by(Service.created_at.desc(), Service.id.desc()))
    return list(result.scalars().all())


async def list_all_services(db: AsyncSession) -> list[Service]:
    """探测器每个 tick 读取的完整服务列表，按 id 排序保证探测顺序稳定。"""
    result = await db.execute(select(Service).order_by(Service.id))
    return list(result.scalars().all())


async def get_service(db: AsyncSession, service_id: int) -> Service:
    result = await db.execute(select(Service).where(Service.id == service_id))
    service = result.scalar_one_or_none()
    if service is None:
        raise NotFoundError("Service not found", detail=f"service_id={service_id}")
    return service


async def update_service(
    db: AsyncSession,
    service_id: int,
    name: Optional[str] = None,
    url: Optional[str] = None,
) -> Service:
    """更新服务名称或 URL，未传入的字段保持不变。"""
    service = await get_service(db, service_id)
    changes = []
    if name is not None and name != service.name:
        changes.append(f"name '{service.name}' -> '{name}'")
        service.name = name
    if url is not None and url != service.url:
        changes.append(f"url '{service.url}' -> '{url}'")
        service.url = url
    if changes:
        append_log(db, "info", f"Service updated: {', '.join(changes)}", service_id=service.id)
    await db.commit()
    await db.refresh(service)
    return service


async def delete_service(db: AsyncSession, service_id: int) -> None:
    service = await get_service(db, service_id)
    name, url = service.name, service.url
    await db.delete(service)
    # 服务已删除，日志不再关联 service_id，否则会被级联删掉
    append_log(db, "warning", f"Service deleted: {name} ({url})")
    await db.commit()
    logger.info(f"Service {service_id} deleted")
