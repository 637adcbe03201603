"""Acting-user resolution: one place where roles become capabilities."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    """Profile role enumeration."""

    CUSTOMER = "customer"
    VET = "vet"
    ADMIN = "admin"
    STORE_MANAGER = "store_manager"


class Capability(str, Enum):
    """What an acting user may do, independent of entity ownership."""

    BOOK = "book"
    TREAT = "treat"
    ADMINISTER = "administer"
    MANAGE_STORE = "manage_store"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.CUSTOMER: frozenset({Capability.BOOK}),
    Role.VET: frozenset({Capability.BOOK, Capability.TREAT}),
    Role.ADMIN: frozenset({Capability.BOOK, Capability.ADMINISTER, Capability.MANAGE_STORE}),
    Role.STORE_MANAGER: frozenset({Capability.BOOK, Capability.MANAGE_STORE}),
}


class ActingUser(BaseModel):
    """The authenticated caller passed into every booking operation."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    role: Role
    capabilities: frozenset[Capability]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


def resolve_acting_user(user_id: UUID, role: str) -> ActingUser:
    """
    Build an ActingUser from a profile id and its stored role.

    Unknown roles resolve to no capabilities rather than failing.
    """
    try:
        resolved = Role(role)
    except ValueError:
        return ActingUser(id=user_id, role=Role.CUSTOMER, capabilities=frozenset())
    return ActingUser(id=user_id, role=resolved, capabilities=ROLE_CAPABILITIES[resolved])
