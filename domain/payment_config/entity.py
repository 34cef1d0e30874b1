"""
支付网关配置实体 - 商户凭据（全局唯一一条生效记录）
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from domain.common.exceptions import DomainValidationException


ALIPAY_PRODUCTION_GATEWAY = "https://openapi.alipay.com/gateway.do"
ALIPAY_SANDBOX_GATEWAY = "https://openapi-sandbox.dl.alipaydev.com/gateway.do"


@dataclass(frozen=True)
class PaymentGatewayConfig:
    """
    支付宝商户配置

    业务规则：
    1. 商户私钥只在服务端使用，不出现在日志与任何客户端响应中
    2. 验签使用支付宝公钥（而不是商户公钥）
    """

    id: str
    app_id: str
    private_key: str = field(repr=False)
    alipay_public_key: str = field(repr=False)
    notify_url: str
    gateway_url: str = ""
    return_url: Optional[str] = None
    app_public_key: Optional[str] = field(default=None, repr=False)
    is_sandbox: bool = False
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.app_id:
            raise DomainValidationException("app_id 不能为空", field="app_id")
        if not self.notify_url:
            raise DomainValidationException("notify_url 不能为空", field="notify_url")

    @property
    def effective_gateway_url(self) -> str:
        if self.gateway_url:
            return self.gateway_url
        return ALIPAY_SANDBOX_GATEWAY if self.is_sandbox else ALIPAY_PRODUCTION_GATEWAY
