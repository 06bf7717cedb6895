"""
告警规则评估 (Alert Rule Evaluator)

将每个 tick 新写入的探测结果与所在服务的启用规则逐条比对，返回触发的告警。

- status 规则：探测状态为 offline 时触发，阈值和运算符不参与判断
- cpu / memory / response_time 规则：按运算符与阈值比较，指标缺失（None）时不触发
- 严重级别：status 规则为 error；数值超过阈值 1.5 倍为 error，否则为 warning

默认不做跨 tick 去重，条件持续成立就每个 tick 都触发。规则设置了
cooldown_seconds 时，用 Redis 键 ``alert:cooldown:{rule_id}`` 在冷却期内抑制重复触发。
冷却键由调度器在通知成功分发后才写入，分发失败的触发不会占用冷却期。
"""
import logging
import operator as op
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.alert import AlertRule
from app.models.service import STATUS_OFFLINE, Service, ServiceMetric

logger = logging.getLogger(__name__)

# 支持的比较运算符映射
OPERATORS = {
    ">": op.gt,
    ">=": op.ge,
    "<": op.lt,
    "<=": op.le,
}

# 规则类型 → (指标字段, 展示名, 单位)
METRIC_FIELDS = {
    "response_time": ("response_time_ms", "Response Time", "ms"),
    "cpu": ("cpu_usage", "CPU Usage", "%"),
    "memory": ("memory_usage", "Memory Usage", "%"),
}

COOLDOWN_KEY = "alert:cooldown:{rule_id}"


def compare(value: float, threshold: float, operator: str) -> bool:
    func = OPERATORS.get(operator)
    if func is None:
        raise ValueError(f"Unknown comparison operator: {operator!r}")
    return func(value, threshold)


def derive_severity(rule_type: str, value: Optional[float], threshold: Optional[float]) -> str:
    if rule_type == "status":
        return "error"
    if value is not None and threshold is not None and value > threshold * 1.5:
        return "error"
    return "warning"


def _fmt(value: float) -> str:
    """整数值不带 .0，其余保留最多两位小数。"""
    if float(value).is_integer():
        return str(int(value))
    return str(round(float(value), 2))


def build_message(
    rule_type: str,
    service_name: str,
    value: Optional[float] = None,
    threshold: Optional[float] = None,
) -> str:
    if rule_type == "status":
        return f"{service_name} is currently offline"
    _, label, unit = METRIC_FIELDS[rule_type]
    return f"{service_name}: {label} is {_fmt(value)}{unit} (threshold: {_fmt(threshold)}{unit})"


@dataclass
class TriggeredAlert:
    """一次规则触发 (One fired rule)"""
    rule: AlertRule
    service_id: int
    service_name: str
    value: Optional[float]
    message: str
    severity: str


def evaluate_rule(rule: AlertRule, metric: ServiceMetric, service_name: str) -> Optional[TriggeredAlert]:
    """
    评估单条规则 (Evaluate one rule against one probe result)

    纯函数，不访问数据库和 Redis。未触发时返回 None。
    """
    if rule.rule_type == "status":
        if metric.status != STATUS_OFFLINE:
            return None
        value = None
    else:
        if rule.rule_type not in METRIC_FIELDS:
            raise ValueError(f"Unknown rule type: {rule.rule_type!r}")
        field_name = METRIC_FIELDS[rule.rule_type][0]
        value = getattr(metric, field_name)
        if value is None or rule.threshold is None:
            return None
        if not compare(value, rule.threshold, rule.comparison_operator):
            return None

    return TriggeredAlert(
        rule=rule,
        service_id=metric.service_id,
        service_name=service_name,
        value=value,
        message=build_message(rule.rule_type, service_name, value, rule.threshold),
        severity=derive_severity(rule.rule_type, value, rule.threshold),
    )


class AlertEvaluator:
    """按批评估探测结果，单条规则出错只记录日志，不影响其他规则。"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        redis_client: Optional[redis.Redis] = None,
    ):
        self.session_factory = session_factory
        self.redis = redis_client

    async def _in_cooldown(self, rule: AlertRule) -> bool:
        """只读检查冷却键是否存在；Redis 不可用时不抑制。"""
        if not rule.cooldown_seconds or self.redis is None:
            return False
        try:
            return bool(await self.redis.exists(COOLDOWN_KEY.format(rule_id=rule.id)))
        except RedisError as e:
            logger.warning(f"Cooldown check failed for rule {rule.id}, firing anyway: {e}")
            return False

    async def start_cooldown(self, rule: AlertRule) -> None:
        """通知分发成功后开始冷却期。"""
        if not rule.cooldown_seconds or self.redis is None:
            return
        try:
            await self.redis.set(COOLDOWN_KEY.format(rule_id=rule.id), "1", ex=rule.cooldown_seconds)
        except RedisError as e:
            logger.warning(f"Failed to start cooldown for rule {rule.id}: {e}")

    async def evaluate(self, metrics: list[ServiceMetric]) -> list[TriggeredAlert]:
        if not metrics:
            return []
        service_ids = {m.service_id for m in metrics}

        async with self.session_factory() as db:
            result = await db.execute(
                select(AlertRule).where(
                    AlertRule.service_id.in_(service_ids),
                    AlertRule.is_active == True,  # noqa: E712
                ).order_by(AlertRule.id)
            )
            rules = result.scalars().all()
            result = await db.execute(select(Service.id, Service.name).where(Service.id.in_(service_ids)))
            names = {row.id: row.name for row in result.all()}

        rules_by_service: dict[int, list[AlertRule]] = {}
        for rule in rules:
            rules_by_service.setdefault(rule.service_id, []).append(rule)

        triggered: list[TriggeredAlert] = []
        for metric in metrics:
            service_name = names.get(metric.service_id, f"Service {metric.service_id}")
            for rule in rules_by_service.get(metric.service_id, []):
                try:
                    alert = evaluate_rule(rule, metric, service_name)
                    if alert is None:
                        continue
                    if await self._in_cooldown(rule):
                        logger.debug(f"Rule {rule.id} in cooldown, skipping")
                        continue
                    triggered.append(alert)
                except Exception:
                    logger.exception(f"Error evaluating rule {rule.id} for service {metric.service_id}")

        if triggered:
            logger.info(f"{len(triggered)} alert rules triggered")
        return triggered
