"""
Payment specific codes and gateway trade-status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    SUCCESS = 0

    # Gateway/crypto errors (6xxxx)
    GATEWAY_REJECTED = 60000
    GATEWAY_UNREACHABLE = 60001
    SIGNATURE_INVALID = 60002
    KEY_IMPORT_ERROR = 60003
    SIGNING_ERROR = 60004
    MALFORMED_NOTIFICATION = 60005
    AMOUNT_MISMATCH = 60006
    ACTIVATION_FAILED = 60007


# Alipay precreate/query success code
ALIPAY_SUCCESS_CODE = "10000"

# trade_status -> local order status ("" means no transition)
ALIPAY_TRADE_STATUS_TO_ORDER = {
    "WAIT_BUYER_PAY": "",
    "TRADE_SUCCESS": "paid",
    "TRADE_FINISHED": "paid",
    "TRADE_CLOSED": "failed",
}
