"""Identity supplied by the upstream gateway.

Authentication happens before requests reach this service; the gateway
forwards the tenant and the authenticated actor as headers.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException

from warranty_desk.tickets.models import Actor
from warranty_desk.tickets.state import Role


@dataclass(slots=True, frozen=True)
class Principal:
    tenant_id: str
    actor: Actor

    def has_role(self, *roles: Role) -> bool:
        return self.actor.role in roles


async def get_current_principal(
    tenant_id: Annotated[str | None, Header(alias="X-Tenant-Id")] = None,
    actor_id: Annotated[str | None, Header(alias="X-Actor-Id")] = None,
    actor_name: Annotated[str | None, Header(alias="X-Actor-Name")] = None,
    actor_role: Annotated[str | None, Header(alias="X-Actor-Role")] = None,
    store_id: Annotated[str | None, Header(alias="X-Actor-Store-Id")] = None,
) -> Principal:
    if not tenant_id or not actor_id or not actor_role:
        raise HTTPException(status_code=401, detail="Missing tenant or actor identity")
    try:
        role = Role(actor_role.upper())
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=f"Unknown actor role '{actor_role}'") from exc
    return Principal(
        tenant_id=tenant_id,
        actor=Actor(id=actor_id, name=actor_name or actor_id, role=role, store_id=store_id or None),
    )


def role_required(*roles: Role) -> Callable[[Principal], Principal]:
    """Dependency factory ensuring the current actor holds one of ``roles``."""

    async def dependency(principal: Annotated[Principal, Depends(get_current_principal)]) -> Principal:
        if not principal.has_role(*roles):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return principal

    return dependency


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(role_required(Role.ADMIN))]
