"""
请求追踪中间件：透传或生成 X-Request-ID，并绑定到 structlog 上下文
"""
import uuid
from typing import Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


REQUEST_ID_HEADER = "X-Request-ID"


def forwarded_client_ip(request: Request) -> Optional[str]:
    """仅用于日志展示；回调白名单只认直连地址"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=forwarded_client_ip(request) or "unknown",
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
