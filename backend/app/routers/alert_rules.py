"""
告警规则管理路由模块 (Alert Rules Management Router)

功能说明：服务级告警规则的增删改查
核心职责：
  - 规则 CRUD，按服务和启用状态筛选
  - status 规则的阈值固定为空、运算符固定为 "="
  - 删除规则时其通知记录由外键级联删除
API端点：GET /alert-rules, POST /alert-rules, GET /alert-rules/{id}, PUT /alert-rules/{id}, DELETE /alert-rules/{id}
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user, get_editor_user
from app.core.exceptions import NotFoundError, ValidationError
from app.models.alert import STATUS_RULE_OPERATOR, AlertRule
from app.models.user import User
from app.schemas.alert import AlertRuleCreate, AlertRuleResponse, AlertRuleUpdate
from app.services.registry import get_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/alert-rules", tags=["alert-rules"])


async def _get_rule(db: AsyncSession, rule_id: int) -> AlertRule:
    result = await db.execute(select(AlertRule).where(AlertRule.id == rule_id))
    rule = result.scalar_one_or_none()
    if rule is None:
        raise NotFoundError("Alert rule not found", detail=f"rule_id={rule_id}")
    return rule


@router.get("", response_model=List[AlertRuleResponse])
async def list_alert_rules(
    service_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    q = select(AlertRule).order_by(AlertRule.id)
    if service_id is not None:
        q = q.where(AlertRule.service_id == service_id)
    if is_active is not None:
        q = q.where(AlertRule.is_active == is_active)
    result = await db.execute(q)
    return result.scalars().all()


@router.post("", response_model=AlertRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_alert_rule(
    data: AlertRuleCreate,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_editor_user),
):
    """
    创建告警规则 (Create Alert Rule)

    目标服务不存在时返回 404；数值型规则缺少阈值时由请求模型返回 422。
    """
    await get_service(db, data.service_id)
    rule = AlertRule(**data.model_dump())
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    logger.info(f"Alert rule {rule.id} created for service {rule.service_id}: {rule.rule_type}")
    return rule


@router.get("/{rule_id}", response_model=AlertRuleResponse)
async def get_alert_rule(
    rule_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return await _get_rule(db, rule_id)


@router.put("/{rule_id}", response_model=AlertRuleResponse)
async def update_alert_rule(
    rule_id: int,
    data: AlertRuleUpdate,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_editor_user),
):
    """更新告警规则，只修改请求中提供的字段。"""
    rule = await _get_rule(db, rule_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(rule, key, value)

    # 更新后重新校验规则类型与阈值/运算符的组合
    if rule.rule_type == "status":
        rule.threshold = None
        rule.comparison_operator = STATUS_RULE_OPERATOR
    else:
        if rule.threshold is None:
            raise ValidationError(f"threshold is required for {rule.rule_type} rules")
        if rule.comparison_operator == STATUS_RULE_OPERATOR:
            rule.comparison_operator = ">"

    await db.commit()
    await db.refresh(rule)
    return rule


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alert_rule(
    rule_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_editor_user),
):
    rule = await _get_rule(db, rule_id)
    await db.delete(rule)
    await db.commit()
    logger.info(f"Alert rule {rule_id} deleted")
