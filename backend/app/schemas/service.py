"""
服务相关请求/响应模型

定义服务增删改查、探测结果和服务状态汇总的数据结构。
"""
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, AnyHttpUrl, BaseModel, Field, TypeAdapter

_http_url = TypeAdapter(AnyHttpUrl)


def _check_http_url(value: str) -> str:
    """只接受绝对 http/https URL，原样保存字符串。"""
    value = value.strip()
    try:
        _http_url.validate_python(value)
    except ValueError:
        raise ValueError("url must be an absolute http:// or https:// URL")
    return value


HttpUrlStr = Annotated[str, Field(max_length=500), AfterValidator(_check_http_url)]


class ServiceCreate(BaseModel):
    """创建服务请求体。"""
    name: str = Field(min_length=1, max_length=255)
    url: HttpUrlStr


class ServiceUpdate(BaseModel):
    """更新服务请求体（所有字段可选）。"""
    name: str | None = Field(default=None, min_length=1, max_length=255)
    url: HttpUrlStr | None = None


class ServiceResponse(BaseModel):
    id: int
    name: str
    url: str
    owner_id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ServiceMetricResponse(BaseModel):
    """单次探测结果响应体。"""
    id: int
    service_id: int
    status: str
    response_time_ms: int | None = None
    status_code: int | None = None
    cpu_usage: float | None = None
    memory_usage: float | None = None
    load_simulated: bool = False
    error: str | None = None
    checked_at: datetime

    model_config = {"from_attributes": True}


class ServiceStatusResponse(ServiceResponse):
    """
    带最新状态的服务响应体。

    没有任何探测记录时 status 为 "unknown"，latest_metric 为 null，
    与后端错误（统一错误结构）区分开。
    """
    status: str = "unknown"
    latest_metric: ServiceMetricResponse | None = None
    uptime_percent: float | None = None  # 24h 可用率
