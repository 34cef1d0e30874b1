"""
Identity port: turns a caller bearer token into a `CallerIdentity`.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import CallerIdentity


@runtime_checkable
class IdentityResolver(Protocol):

    async def resolve(self, token: str) -> CallerIdentity:
        """Raise `UnauthorizedException` for missing, invalid or expired tokens."""
        ...
