"""
自定义异常映射与全局异常处理器
"""
import traceback
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status as http_status

from .response import error_response
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


logger = get_logger(__name__)


class UnauthorizedException(BusinessException):
    """未授权异常（缺失、无效或过期的令牌）"""

    def __init__(self, message: str = "Unauthorized", *, error_type: str = "Unauthenticated"):
        super().__init__(
            code=BusinessCode.UNAUTHORIZED,
            message=message,
            error_type=error_type,
        )


class TokenExpiredException(BusinessException):
    def __init__(self):
        super().__init__(
            code=BusinessCode.TOKEN_EXPIRED,
            message="Token expired",
            error_type="TokenExpired",
        )


class ForbiddenException(BusinessException):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=message,
            error_type="Forbidden",
        )


_CODE_TO_HTTP_STATUS = {
    BusinessCode.PARAM_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_422_UNPROCESSABLE_ENTITY,
    BusinessCode.BUSINESS_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.TOKEN_INVALID: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.TOKEN_EXPIRED: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.ORDER_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.PLAN_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.UNAUTHORIZED: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.FORBIDDEN: http_status.HTTP_403_FORBIDDEN,
    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.DATABASE_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    BusinessCode.CONFIG_MISSING: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    PaymentCode.GATEWAY_REJECTED: http_status.HTTP_502_BAD_GATEWAY,
    PaymentCode.GATEWAY_UNREACHABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    PaymentCode.KEY_IMPORT_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    PaymentCode.SIGNING_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    PaymentCode.SIGNATURE_INVALID: http_status.HTTP_400_BAD_REQUEST,
    PaymentCode.MALFORMED_NOTIFICATION: http_status.HTTP_400_BAD_REQUEST,
    PaymentCode.AMOUNT_MISMATCH: http_status.HTTP_400_BAD_REQUEST,
    PaymentCode.ACTIVATION_FAILED: http_status.HTTP_502_BAD_GATEWAY,
}


def business_code_to_http_status(code: int) -> int:
    """根据业务码映射HTTP状态码（默认400）。"""
    return _CODE_TO_HTTP_STATUS.get(int(code), http_status.HTTP_400_BAD_REQUEST)


def _request_id(request: Request) -> str:
    return getattr(getattr(request, "state", object()), "request_id", None) or str(uuid.uuid4())


def _error_json(request: Request, status_code: int, *, headers=None, **fields) -> JSONResponse:
    body = error_response(request_id=_request_id(request), **fields)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


# 框架抛出的 HTTPException 按状态码换算业务码
_HTTP_STATUS_TO_CODE = {
    401: BusinessCode.UNAUTHORIZED,
    403: BusinessCode.FORBIDDEN,
    404: BusinessCode.NOT_FOUND,
    503: BusinessCode.SERVICE_UNAVAILABLE,
}


def register_exception_handlers(app: FastAPI) -> None:
    """
    注册全局异常处理器

    业务异常按业务码映射 HTTP 状态；未捕获异常统一 500，
    仅 DEBUG 下附带堆栈。
    """

    @app.exception_handler(BusinessException)
    async def on_business_error(request: Request, exc: BusinessException):
        status_code = business_code_to_http_status(exc.code)
        return _error_json(
            request,
            status_code,
            headers={"WWW-Authenticate": "Bearer"} if status_code == 401 else None,
            code=exc.code,
            message=exc.message,
            error_type=exc.error_type,
            details=exc.details,
            field=exc.field,
        )

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        return _error_json(
            request,
            http_status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=f"Validation failed: {first.get('msg', 'unknown')}",
            error_type="ValidationError",
            details={"errors": [{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in errors]},
            field=".".join(str(loc) for loc in first.get("loc", [])[1:]),
        )

    @app.exception_handler(HTTPException)
    async def on_http_error(request: Request, exc: HTTPException):
        return _error_json(
            request,
            exc.status_code,
            headers=getattr(exc, "headers", None),
            code=_HTTP_STATUS_TO_CODE.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
            message=str(exc.detail),
            error_type="HTTPError",
            details={"status_code": exc.status_code},
        )

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception):
        logger.error("unhandled_exception", error_type=type(exc).__name__, exc_info=True)
        details = {"exception": str(exc), "traceback": traceback.format_exc()} if app.debug else None
        return _error_json(
            request,
            http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            code=BusinessCode.SYSTEM_ERROR,
            message="Internal server error",
            error_type="SystemError",
            details=details,
        )
