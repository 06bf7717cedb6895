from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

RuleType = Literal["cpu", "memory", "response_time", "status"]
Operator = Literal[">", "<", ">=", "<="]
NotificationMethod = Literal["email", "push"]


# ── AlertRule ──

class AlertRuleCreate(BaseModel):
    service_id: int
    rule_type: RuleType
    threshold: float | None = None
    comparison_operator: Operator | Literal["="] = ">"
    notification_method: NotificationMethod = "push"
    is_active: bool = True
    cooldown_seconds: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _normalize_status_rule(self):
        # status 规则只看 offline，阈值和运算符无意义
        if self.rule_type == "status":
            self.threshold = None
            self.comparison_operator = "="
        elif self.threshold is None:
            raise ValueError(f"threshold is required for {self.rule_type} rules")
        elif self.comparison_operator == "=":
            raise ValueError("operator '=' is only valid for status rules")
        return self


class AlertRuleUpdate(BaseModel):
    rule_type: RuleType | None = None
    threshold: float | None = None
    comparison_operator: Operator | None = None
    notification_method: NotificationMethod | None = None
    is_active: bool | None = None
    cooldown_seconds: int | None = Field(default=None, ge=0)


class AlertRuleResponse(BaseModel):
    id: int
    service_id: int
    rule_type: str
    threshold: float | None
    comparison_operator: str
    notification_method: str
    is_active: bool
    cooldown_seconds: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
