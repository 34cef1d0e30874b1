"""
订单领域实体 - 一次会员购买尝试
"""
from __future__ import annotations

import secrets
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


ORDER_NUMBER_PREFIX = "ORD"
_CENT = Decimal("0.01")


class OrderStatus(str, Enum):
    """订单状态枚举（只能前进，不能回退）"""
    PENDING = "pending"  # 待支付
    PAID = "paid"        # 已支付
    FAILED = "failed"    # 支付失败/交易关闭


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_amount(value: Decimal | str | int | float) -> Decimal:
    """金额规范化为两位小数（四舍五入），必须大于0"""
    try:
        amount = Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise DomainValidationException(f"无效的金额: {value}", field="amount")
    if amount <= 0:
        raise DomainValidationException(f"订单金额必须大于0: {value}", field="amount")
    return amount


def generate_order_number() -> str:
    """生成商户订单号：ORD + 毫秒时间戳 + 6位随机数"""
    return f"{ORDER_NUMBER_PREFIX}{int(time.time() * 1000)}{secrets.randbelow(10**6):06d}"


@dataclass
class Order:
    """
    订单聚合根

    业务规则：
    1. order_number 全局唯一，创建后不可变
    2. 金额必须大于0，保留两位小数
    3. 状态只能 pending -> paid 或 pending -> failed
    4. payment_id 在预下单后写入一次，在验签通过的通知中再写入一次
    """

    id: str
    user_id: str
    product_id: str
    amount: Decimal
    status: OrderStatus
    order_number: str
    subject: str = ""
    payment_id: Optional[str] = None
    payment_method: str = "alipay"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        self.amount = normalize_amount(self.amount)
        if not self.order_number:
            raise DomainValidationException("订单号不能为空", field="order_number")
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)

    @classmethod
    def new(
        cls,
        *,
        user_id: str,
        product_id: str,
        amount: Decimal,
        subject: str,
        payment_method: str = "alipay",
    ) -> "Order":
        now = datetime.now(timezone.utc)
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            product_id=product_id,
            amount=amount,
            status=OrderStatus.PENDING,
            order_number=generate_order_number(),
            subject=subject,
            payment_method=payment_method,
            created_at=now,
            updated_at=now,
        )

    def mark_paid(self, payment_id: Optional[str] = None) -> None:
        """标记已支付，只能从 pending 转换"""
        if self.status != OrderStatus.PENDING:
            raise DomainValidationException(
                f"无法从状态 {self.status.value} 转换为 paid",
                field="status",
            )
        self.status = OrderStatus.PAID
        if payment_id:
            self.payment_id = payment_id
        self.paid_at = datetime.now(timezone.utc)
        self.updated_at = self.paid_at

    def mark_failed(self) -> None:
        """标记失败，只能从 pending 转换"""
        if self.status != OrderStatus.PENDING:
            raise DomainValidationException(
                f"无法从状态 {self.status.value} 转换为 failed",
                field="status",
            )
        self.status = OrderStatus.FAILED
        self.updated_at = datetime.now(timezone.utc)

    def is_final_status(self) -> bool:
        return self.status in (OrderStatus.PAID, OrderStatus.FAILED)
