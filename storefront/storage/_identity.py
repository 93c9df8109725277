"""
Static identity provider: bearer tokens mapped to users, users to roles.
"""

from __future__ import annotations

from collections.abc import Mapping

from storefront.storage._protocols import Role, Session


class MemoryIdentity:
    def __init__(
        self,
        tokens: Mapping[str, str] | None = None,
        roles: Mapping[str, Role] | None = None,
    ) -> None:
        self._tokens = dict(tokens or {})
        self._roles = dict(roles or {})

    def register(self, token: str, user_id: str, role: Role = Role.CUSTOMER) -> None:
        self._tokens[token] = user_id
        self._roles[user_id] = role

    async def get_session(self, token: str | None) -> Session | None:
        if not token:
            return None
        user_id = self._tokens.get(token)
        return Session(user_id=user_id) if user_id is not None else None

    async def get_role(self, user_id: str) -> Role:
        return self._roles.get(user_id, Role.CUSTOMER)


__all__ = ("MemoryIdentity",)
