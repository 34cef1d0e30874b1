"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
Adapters are bound to one `PaymentGatewayConfig`, resolved per request.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Callable, Protocol, runtime_checkable

from application.dtos.payments import PrecreateSuccess, TradeNotification
from domain.payment_config.entity import PaymentGatewayConfig


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the QR (precreate) flow and async notifications."""

    provider: str

    async def precreate(self, *, out_trade_no: str, total_amount: Decimal, subject: str) -> PrecreateSuccess: ...

    def parse_notification(self, body: bytes) -> TradeNotification: ...

    async def aclose(self) -> None: ...


GatewayFactory = Callable[[PaymentGatewayConfig], PaymentGateway]
