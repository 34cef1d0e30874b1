import re
from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException
from domain.order.entity import Order, OrderStatus, generate_order_number, normalize_amount
from domain.payment_config.entity import (
    ALIPAY_PRODUCTION_GATEWAY,
    ALIPAY_SANDBOX_GATEWAY,
    PaymentGatewayConfig,
)


def test_normalize_amount_rounds_half_up():
    assert normalize_amount("99") == Decimal("99.00")
    assert normalize_amount(Decimal("0.005")) == Decimal("0.01")
    assert normalize_amount("12.345") == Decimal("12.35")


@pytest.mark.parametrize("value", ["0", "-5", "abc", "0.004"])
def test_normalize_amount_rejects_invalid(value):
    with pytest.raises(DomainValidationException):
        normalize_amount(value)


def test_order_number_format():
    assert re.fullmatch(r"ORD\d{13}\d{6}", generate_order_number())


def test_new_order_is_pending():
    order = Order.new(user_id="u1", product_id="p1", amount=Decimal("10"), subject="s")
    assert order.status == OrderStatus.PENDING
    assert order.amount == Decimal("10.00")
    assert order.payment_id is None
    assert order.created_at is not None


def test_status_only_moves_forward():
    order = Order.new(user_id="u1", product_id="p1", amount=Decimal("10"), subject="s")
    order.mark_paid("TN1")
    assert order.status == OrderStatus.PAID
    assert order.payment_id == "TN1"
    assert order.is_final_status()
    with pytest.raises(DomainValidationException):
        order.mark_failed()
    with pytest.raises(DomainValidationException):
        order.mark_paid("TN2")


def test_gateway_url_defaults(gateway_config):
    from dataclasses import replace

    assert gateway_config.effective_gateway_url == ALIPAY_SANDBOX_GATEWAY
    assert replace(gateway_config, is_sandbox=False).effective_gateway_url == ALIPAY_PRODUCTION_GATEWAY


def test_config_repr_hides_keys(gateway_config, rsa_keys):
    text = repr(gateway_config)
    assert "PRIVATE KEY" not in text
    assert rsa_keys.merchant_private not in text


def test_config_requires_app_id(rsa_keys):
    with pytest.raises(DomainValidationException):
        PaymentGatewayConfig(
            id="alipay_config",
            app_id="",
            private_key=rsa_keys.merchant_private,
            alipay_public_key=rsa_keys.gateway_public,
            notify_url="https://x/notify",
        )
