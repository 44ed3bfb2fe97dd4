# app/auth/permissions.py
# Closed role/capability model, resolved once when the request layer builds an Actor

from enum import Enum
from typing import Dict, FrozenSet, Optional
from pydantic import BaseModel, validator
import logging

from app.core.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)


class ActorRole(str, Enum):
    PLATFORM_ADMIN = "platform_admin"
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"


class Capability(str, Enum):
    MANAGE_SCHEDULES = "manage_schedules"
    MANAGE_SHIFTS = "manage_shifts"
    REQUEST_SWAPS = "request_swaps"
    APPROVE_SWAPS = "approve_swaps"
    VIEW_ALL_SWAPS = "view_all_swaps"


_MANAGEMENT = frozenset(Capability)

ROLE_CAPABILITIES: Dict[ActorRole, FrozenSet[Capability]] = {
    ActorRole.PLATFORM_ADMIN: _MANAGEMENT,
    ActorRole.OWNER: _MANAGEMENT,
    ActorRole.ADMIN: _MANAGEMENT,
    ActorRole.MANAGER: _MANAGEMENT,
    ActorRole.STAFF: frozenset({Capability.REQUEST_SWAPS}),
}


class Actor(BaseModel):
    """The authenticated caller of a core operation"""
    user_id: int
    role: ActorRole
    employee_id: Optional[int] = None

    @validator("role", pre=True)
    def normalise_role(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return ROLE_CAPABILITIES.get(self.role, frozenset())


class PermissionChecker:
    """
    Check an actor's capabilities
    """

    def __init__(self, actor: Actor):
        self.actor = actor

    def can(self, capability: Capability) -> bool:
        return capability in self.actor.capabilities

    def cannot(self, capability: Capability) -> bool:
        return not self.can(capability)

    def require(self, capability: Capability, custom_message: Optional[str] = None):
        """
        Require capability or raise PermissionDeniedError
        """
        if self.cannot(capability):
            message = custom_message or f"Role '{self.actor.role.value}' cannot {capability.value.replace('_', ' ')}"
            logger.warning(f"Permission check failed for user {self.actor.user_id}: {message}")
            raise PermissionDeniedError(message)


def require_capability(actor: Actor, capability: Capability) -> Actor:
    PermissionChecker(actor).require(capability)
    return actor
