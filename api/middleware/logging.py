"""
访问日志中间件

每个请求记录一条完成日志（状态码、耗时）。请求体默认不记录；
开启后按内容类型解析，签名、密钥、令牌字段替换为 ***。
"""
import json
import time
from typing import Any, Optional
from urllib.parse import parse_qsl

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import SENSITIVE_KEYS, get_logger


logger = get_logger(__name__)

_QUIET_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})
_TRUTHY = {"true", "1", "yes"}
_FALSY = {"false", "0", "no"}


def mask(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: "***" if str(k).lower() in SENSITIVE_KEYS else mask(v) for k, v in data.items()}
    if isinstance(data, list):
        return [mask(item) for item in data]
    return data


def decode_body(raw: bytes, content_type: str) -> Optional[Any]:
    """只解析 JSON 与表单（支付宝回调），其他类型不落日志"""
    text = raw.decode("utf-8", errors="ignore")
    if "application/json" in content_type:
        try:
            return json.loads(text)
        except ValueError:
            return None
    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(text, keep_blank_values=True))
    return None


class LoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, log_body: Optional[bool] = None, max_body_bytes: Optional[int] = None):
        super().__init__(app)
        if log_body is None:
            log_body = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT and settings.DEBUG
        self.log_body = bool(log_body)
        self.max_body_bytes = max_body_bytes or settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in _QUIET_PATHS:
            return await call_next(request)

        fields = {"method": request.method, "path": request.url.path}
        if request.query_params:
            fields["query"] = dict(request.query_params)
        if request.method in ("POST", "PUT", "PATCH") and self._wants_body(request):
            raw = await request.body()
            body = decode_body(raw[: self.max_body_bytes], request.headers.get("content-type", "").lower())
            if body is not None:
                fields["body"] = mask(body)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                error_type=type(exc).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                **fields,
                exc_info=True,
            )
            raise

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        response.headers["X-Process-Time"] = f"{elapsed_ms / 1000:.3f}"

        status = response.status_code
        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        else:
            log = logger.info
        log("request_completed", status_code=status, duration_ms=elapsed_ms, **fields)
        return response

    def _wants_body(self, request: Request) -> bool:
        # X-Log-Body 覆盖默认开关
        override = (request.headers.get("X-Log-Body") or "").lower()
        if override in _TRUTHY:
            return True
        if override in _FALSY:
            return False
        return self.log_body
