"""
Membership ports. Activation is owned by an external system and must be
idempotent per order id; plan resolution is pluggable.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MembershipActivator(Protocol):

    async def activate(self, *, user_id: str, plan_id: str, order_id: str) -> None: ...


@runtime_checkable
class PlanResolver(Protocol):

    async def resolve(self, product_id: str) -> str:
        """Return the plan id for a product, or raise `PlanNotFoundException`."""
        ...
