"""
仪表盘相关响应模型
"""
from datetime import datetime

from pydantic import BaseModel


class ServiceStatusCounts(BaseModel):
    total: int = 0
    online: int = 0
    degraded: int = 0
    offline: int = 0
    unknown: int = 0  # 尚无探测记录


class NotificationCounts(BaseModel):
    last_24h: int = 0
    failed_24h: int = 0


class DashboardStats(BaseModel):
    """仪表盘汇总统计。平均响应时间和可用率在没有数据时为 null。"""
    services: ServiceStatusCounts
    avg_response_time_ms: float | None = None
    uptime_percent_24h: float | None = None
    notifications: NotificationCounts
    timestamp: datetime
