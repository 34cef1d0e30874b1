"""
响应格式定义

- 管理与查询接口使用统一信封 `Response`（code/message/data/error）
- 下单接口使用前端约定的 `{success, qr_code_url, order_number}` / `{success, error}`
"""
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_serializer

from shared.codes import BusinessCode


T = TypeVar("T")


class ErrorDetail(BaseModel):
    type: str
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """UTC ISO8601，以 Z 结尾"""
        return timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class Response(BaseModel, Generic[T]):
    """统一响应模型"""
    code: int
    message: str
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None


class OrderCreated(BaseModel):
    success: bool = True
    qr_code_url: str
    order_number: str


class OrderFailed(BaseModel):
    success: bool = False
    error: str


def success_response(data: Any = None, message: str = "Success", code: int = BusinessCode.SUCCESS) -> Response:
    return Response(code=code, message=message, data=data)


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None
) -> Response:
    """
    创建错误响应

    Args:
        code: 业务状态码
        message: 错误消息（不得包含密钥材料）
        error_type: 错误类型
        details: 错误详情
        field: 错误字段
        request_id: 请求ID
    """
    return Response(
        code=code,
        message=message,
        error=ErrorDetail(type=error_type, details=details, field=field, request_id=request_id),
    )


def order_created_response(qr_code_url: str, order_number: str) -> OrderCreated:
    return OrderCreated(qr_code_url=qr_code_url, order_number=order_number)


def order_failed_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=OrderFailed(error=message).model_dump())
