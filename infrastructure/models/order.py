"""
订单与支付配置数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，业务规则在 domain 层
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Numeric, String, Text

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderModel(Base):
    """订单表 orders"""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True, comment="用户ID")
    product_id = Column(String(64), nullable=False, comment="产品/套餐ID")
    subject = Column(String(256), nullable=False, default="", comment="订单标题")

    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="订单金额（元）")
    status = Column(String(16), nullable=False, default="pending", index=True, comment="pending/paid/failed")

    order_number = Column(String(64), unique=True, nullable=False, comment="商户订单号 out_trade_no")
    payment_id = Column(String(64), nullable=True, index=True, comment="支付渠道交易号")
    payment_method = Column(String(32), nullable=False, default="alipay", comment="支付方式")

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")

    __table_args__ = (
        Index("ix_orders_user_status", "user_id", "status"),
    )

    def __repr__(self):
        return (
            f"<OrderModel(id={self.id}, order_number='{self.order_number}', "
            f"amount={self.amount}, status='{self.status}')>"
        )


class PaymentConfigModel(Base):
    """支付配置表 payment_configs（按固定ID保存唯一生效配置）"""
    __tablename__ = "payment_configs"

    id = Column(String(64), primary_key=True)
    alipay_app_id = Column(String(64), nullable=False)
    alipay_private_key = Column(Text, nullable=False, comment="商户私钥 PKCS#8 PEM")
    alipay_public_key = Column(Text, nullable=False, comment="支付宝公钥 SPKI PEM")
    app_public_key = Column(Text, nullable=True, comment="商户公钥（仅展示）")
    alipay_gateway_url = Column(String(500), nullable=False, default="")
    notify_url = Column(String(500), nullable=False)
    return_url = Column(String(500), nullable=True)
    is_sandbox = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<PaymentConfigModel(id='{self.id}', app_id='{self.alipay_app_id}')>"
