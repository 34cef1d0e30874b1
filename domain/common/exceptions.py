"""领域层业务异常定义，供领域、应用与基础设施使用。

核心（core）层仅负责把这些异常映射为 HTTP 响应，领域层不反向依赖核心层。
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, reference: str):
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details={"reference": reference},
        )


class PaymentConfigMissingException(BusinessException):
    def __init__(self, config_id: str):
        super().__init__(
            code=BusinessCode.CONFIG_MISSING,
            message="Payment configuration not found",
            error_type="ConfigMissing",
            details={"config_id": config_id},
        )


class PlanNotFoundException(BusinessException):
    def __init__(self, product_id: str):
        super().__init__(
            code=BusinessCode.PLAN_NOT_FOUND,
            message="No membership plan for product",
            error_type="PlanNotFound",
            details={"product_id": product_id},
        )


class AmountMismatchException(BusinessException):
    """通知金额与本地订单金额不一致"""

    def __init__(self, order_number: str, expected: Decimal, received: str):
        super().__init__(
            code=PaymentCode.AMOUNT_MISMATCH,
            message="Notified amount does not match order amount",
            error_type="AmountMismatch",
            details={"order_number": order_number, "expected": str(expected), "received": received},
        )


class MembershipActivationError(BusinessException):
    """会员开通失败（外部系统不可用或拒绝）"""

    def __init__(self, reason: str, *, order_id: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(
            code=PaymentCode.ACTIVATION_FAILED,
            message="Membership activation failed",
            error_type="ActivationFailed",
            details={"reason": reason, "order_id": order_id, "status_code": status_code},
        )
