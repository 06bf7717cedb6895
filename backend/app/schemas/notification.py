"""
通知相关请求/响应模型
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class NotificationCreate(BaseModel):
    """手动为某条告警规则发送通知的请求体。"""
    alert_rule_id: int
    message: str = Field(min_length=1)
    severity: Literal["warning", "error"] = "warning"


class NotificationResponse(BaseModel):
    id: int
    alert_rule_id: int
    message: str
    severity: str
    channel: str
    status: str  # pending/delivering/delivered/failed
    error: Optional[str]
    created_at: datetime
    sent_at: Optional[datetime]
    service_id: Optional[int] = None
    service_name: Optional[str] = None

    model_config = {"from_attributes": True}
