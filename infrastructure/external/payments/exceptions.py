"""
Exceptions for the Alipay gateway adapter and signer, mapped to unified
BusinessException variants.

Messages are safe to return to clients: they never carry key material.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


PROVIDER = "alipay"


class KeyImportError(BusinessException):
    def __init__(self, key_kind: str, reason: str = "malformed key"):
        super().__init__(
            code=PaymentCode.KEY_IMPORT_ERROR,
            message=f"Unable to load {key_kind}",
            error_type="KeyImportError",
            details={"provider": PROVIDER, "key_kind": key_kind, "reason": reason},
        )


class SigningError(BusinessException):
    def __init__(self, reason: str):
        super().__init__(
            code=PaymentCode.SIGNING_ERROR,
            message="Request signing failed",
            error_type="SigningError",
            details={"provider": PROVIDER, "reason": reason},
        )


class GatewayRejected(BusinessException):
    def __init__(self, provider_code: str, message: str, *, details: Optional[dict] = None):
        full_details = {"provider": PROVIDER, "provider_code": provider_code}
        if details:
            full_details.update(details)
        self.provider_code = provider_code
        super().__init__(
            code=PaymentCode.GATEWAY_REJECTED,
            message=f"Gateway rejected request: {message}",
            error_type="GatewayRejected",
            details=full_details,
        )


class GatewayUnreachable(BusinessException):
    def __init__(self, reason: str, *, status_code: Optional[int] = None):
        super().__init__(
            code=PaymentCode.GATEWAY_UNREACHABLE,
            message="Payment gateway unreachable",
            error_type="GatewayUnreachable",
            details={"provider": PROVIDER, "reason": reason, "status_code": status_code},
        )


class MalformedNotification(BusinessException):
    def __init__(self, missing: list[str] | None = None, reason: str | None = None):
        details: dict = {"provider": PROVIDER}
        if missing:
            details["missing"] = missing
        if reason:
            details["reason"] = reason
        super().__init__(
            code=PaymentCode.MALFORMED_NOTIFICATION,
            message="Malformed gateway notification",
            error_type="MalformedNotification",
            details=details,
        )


class SignatureInvalid(BusinessException):
    def __init__(self, reason: str = "signature mismatch", *, out_trade_no: Optional[str] = None):
        super().__init__(
            code=PaymentCode.SIGNATURE_INVALID,
            message="Invalid notification signature",
            error_type="SignatureInvalid",
            details={"provider": PROVIDER, "reason": reason, "out_trade_no": out_trade_no},
        )
