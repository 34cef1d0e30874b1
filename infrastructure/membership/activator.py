"""
Membership adapters.

Activation is delegated to a PostgREST-style RPC (`activate_membership`) that
is idempotent per order id. Plan ids come from a settings map.
"""
from __future__ import annotations

from typing import Mapping, Optional

import httpx

from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.exceptions import MembershipActivationError, PlanNotFoundException


logger = get_logger(__name__)


class RpcMembershipActivator:
    def __init__(
        self,
        rpc_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        cfg = payment_settings.membership
        self._rpc_url = rpc_url or cfg.rpc_url
        self._api_key = api_key or cfg.api_key
        self._timeout = timeout if timeout is not None else cfg.timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def activate(self, *, user_id: str, plan_id: str, order_id: str) -> None:
        if not self._rpc_url:
            raise MembershipActivationError("membership rpc_url not configured", order_id=order_id)

        payload = {"p_user_id": user_id, "p_plan_id": plan_id, "p_order_id": order_id}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                resp = await client.post(self._rpc_url, json=payload, headers=self._headers())
            except httpx.HTTPError as exc:
                raise MembershipActivationError(type(exc).__name__, order_id=order_id) from exc

        if resp.status_code >= 300:
            raise MembershipActivationError(
                "rpc returned error status", order_id=order_id, status_code=resp.status_code
            )
        logger.info("membership_activated", user_id=user_id, plan_id=plan_id, order_id=order_id)


class MappingPlanResolver:
    """product_id -> plan id; unknown products pass through when allowed."""

    def __init__(self, plan_ids: Optional[Mapping[str, str]] = None, *, passthrough: Optional[bool] = None):
        cfg = payment_settings.membership
        self._plan_ids = dict(plan_ids if plan_ids is not None else cfg.plan_ids)
        self._passthrough = cfg.plan_passthrough if passthrough is None else passthrough

    async def resolve(self, product_id: str) -> str:
        plan_id = self._plan_ids.get(product_id)
        if plan_id:
            return plan_id
        if self._passthrough and product_id:
            return product_id
        raise PlanNotFoundException(product_id)
