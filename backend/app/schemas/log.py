from datetime import datetime

from pydantic import BaseModel


class ServiceLogResponse(BaseModel):
    """服务活动日志响应体。"""
    id: int
    service_id: int | None
    level: str
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}
