"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Merchant credentials are NOT here: they live in the `payment_configs` table
and are resolved per request. This module only carries process-level knobs.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaymentTimeouts(BaseModel):
    connect: float = 3.0
    read: float = 10.0
    write: float = 10.0
    total: float = 15.0


class WebhookSettings(BaseModel):
    ip_allowlist: list[str] | None = None  # Optional IPs/CIDRs allowed to post notifications


class AlipaySettings(BaseModel):
    config_id: str = "alipay_config"
    config_cache_ttl: float = 60.0  # seconds, 0 disables the read-through cache
    product_code: str = "FACE_TO_FACE_PAYMENT"
    timezone: str = "Asia/Shanghai"


class MembershipSettings(BaseModel):
    rpc_url: Optional[str] = None  # e.g. https://<project>.supabase.co/rest/v1/rpc/activate_membership
    api_key: Optional[str] = None
    timeout: float = 10.0
    # product_id -> plan id; unknown products pass through when allowed
    plan_ids: dict[str, str] = Field(default_factory=dict)
    plan_passthrough: bool = True


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    alipay: AlipaySettings = Field(default_factory=AlipaySettings)
    membership: MembershipSettings = Field(default_factory=MembershipSettings)

    model_config = SettingsConfigDict(
        env_prefix="PAYMENT__",
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
