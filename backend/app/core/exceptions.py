"""
全局异常处理模块 (Global Exception Handling Module)

定义业务异常类和 FastAPI 全局异常处理器，所有错误统一返回
``{"error", "message", "detail", "status_code"}`` 结构，前端据此区分
"后端错误" 和 "暂无数据" 两种状态。

Defines business exceptions and FastAPI global handlers. Every error is returned
as ``{"error", "message", "detail", "status_code"}`` so clients can tell a backend
error apart from an empty "no data" result.
"""
import logging
import traceback
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BusinessError(Exception):
    """业务异常基类 (Base Business Exception)"""
    status_code: int = 400
    error: str = "business_error"

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class NotFoundError(BusinessError):
    """资源不存在 (Resource Not Found)"""
    status_code = 404
    error = "not_found"


class PermissionDeniedError(BusinessError):
    """权限不足 (Permission Denied)"""
    status_code = 403
    error = "permission_denied"


class ValidationError(BusinessError):
    """数据校验失败 (Validation Error)"""
    status_code = 422
    error = "validation_error"


class ConflictError(BusinessError):
    """资源冲突，例如健康检查 tick 正在执行 (Resource Conflict, e.g. a tick already running)"""
    status_code = 409
    error = "conflict"


def _error_body(error: str, message: str, detail: Optional[str], status_code: int) -> dict:
    return {"error": error, "message": message, "detail": detail, "status_code": status_code}


def register_exception_handlers(app: FastAPI) -> None:
    """
    注册全局异常处理器 (Register global exception handlers)

    处理优先级：
    1. BusinessError 子类 → 对应 HTTP 状态码
    2. HTTPException → 包装为统一格式
    3. Exception → 500 + 完整 traceback 日志
    """

    @app.exception_handler(BusinessError)
    async def business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error, exc.message, exc.detail, exc.status_code),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body("http_error", str(exc.detail), None, exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception on %s %s: %s\n%s",
            request.method,
            request.url.path,
            str(exc),
            traceback.format_exc(),
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("internal_server_error", "Internal server error, please try again later", None, 500),
        )
