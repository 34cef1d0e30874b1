"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from application.ports.payment_gateway import PaymentGateway
from domain.payment_config.entity import PaymentGatewayConfig


def get_payment_gateway(config: PaymentGatewayConfig) -> PaymentGateway:
    """Build a gateway adapter bound to the config resolved for this request."""
    from .alipay_client import AlipayClient
    return AlipayClient(config)
