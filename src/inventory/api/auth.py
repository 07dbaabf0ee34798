"""Acting-user resolution for the Inventory API.

Authentication happens upstream: the gateway forwards the authenticated user
id and granted permissions as headers. This module only reads them and
checks capabilities; the domain layer receives a plain user id.
"""

from dataclasses import dataclass, field

from fastapi import Depends, Header, HTTPException

from inventory.utils.logging import bind_actor

TRANSFER = "inventory.transfer"
ADJUST = "inventory.adjust"
APPROVE_ADJUSTMENT = "inventory.approve_adjustment"


@dataclass(frozen=True)
class Actor:
    user_id: str
    permissions: frozenset = field(default_factory=frozenset)

    def can(self, permission: str) -> bool:
        return permission in self.permissions


async def get_actor(
    x_user_id: str = Header(default=""),
    x_user_permissions: str = Header(default=""),
) -> Actor:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing acting user")

    permissions = frozenset(p.strip() for p in x_user_permissions.split(",") if p.strip())
    bind_actor(x_user_id)
    return Actor(user_id=x_user_id, permissions=permissions)


def require(permission: str):
    """Dependency that resolves the actor and insists on ``permission``."""

    async def _checker(actor: Actor = Depends(get_actor)) -> Actor:
        if not actor.can(permission):
            raise HTTPException(status_code=403, detail=f"Missing permission: {permission}")
        return actor

    return _checker
