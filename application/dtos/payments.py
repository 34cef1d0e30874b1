"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.types import condecimal


class CreateOrderRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=256)
    # 元；多余小数位在下单时四舍五入到分
    total_amount: condecimal(gt=0, lt=Decimal("1e13"))  # type: ignore[valid-type]
    product_id: str = Field(min_length=1, max_length=64)

    @field_validator("subject", "product_id")
    @classmethod
    def _strip(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("must not be blank")
        return s


class CreateOrderResult(BaseModel):
    order_number: str
    qr_code_url: str
    out_trade_no: str


class CallerIdentity(BaseModel):
    user_id: str
    is_superuser: bool = False


# Gateway envelopes: one explicit model per response shape
class PrecreateSuccess(BaseModel):
    code: Literal["10000"]
    msg: str
    out_trade_no: str = Field(min_length=1)
    qr_code: str = Field(min_length=1)

    model_config = ConfigDict(extra="ignore", frozen=True)


class GatewayErrorResponse(BaseModel):
    code: str
    msg: str = ""
    sub_code: Optional[str] = None
    sub_msg: Optional[str] = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    @property
    def reason(self) -> str:
        return self.sub_msg or self.msg or "unknown error"


class TradeNotification(BaseModel):
    """A gateway callback whose signature has been verified."""

    out_trade_no: str
    trade_status: str
    trade_no: Optional[str] = None
    total_amount: Optional[str] = None
    app_id: Optional[str] = None
    gmt_payment: Optional[str] = None
    fields: dict[str, str] = Field(default_factory=dict, repr=False)

    model_config = ConfigDict(frozen=True)


class NotificationOutcome(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    REJECTED = "rejected"

    @property
    def ack(self) -> str:
        # Plain-text token the gateway parses
        return "fail" if self is NotificationOutcome.REJECTED else "success"


class OrderStatusView(BaseModel):
    order_number: str
    status: str
    amount: Decimal
    product_id: str
    payment_method: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class PaymentConfigUpdate(BaseModel):
    app_id: str = Field(min_length=1)
    private_key: str = Field(min_length=1, repr=False)
    alipay_public_key: str = Field(min_length=1, repr=False)
    app_public_key: Optional[str] = Field(default=None, repr=False)
    gateway_url: str = ""
    notify_url: str = Field(min_length=1)
    return_url: Optional[str] = None
    is_sandbox: bool = False


class PaymentConfigView(BaseModel):
    """Admin view of the gateway config. Never includes the private key."""

    app_id: str
    gateway_url: str
    notify_url: str
    return_url: Optional[str] = None
    is_sandbox: bool = False
    has_private_key: bool
    alipay_public_key: str
    updated_at: Optional[datetime] = None
