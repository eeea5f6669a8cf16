# Overview: Role and outlet-scope decisions consumed by the services.

"""
Access Policy

Business logic never reads the request context. Routes build an Actor from
the authenticated user and pass it explicitly, so every decision here is a
pure function of (actor, target outlet).

- owner: sees and manages every outlet, the only role that can approve or
  deliver material orders
- admin / staff: scoped to their own outlet
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models.auth import ROLE_OWNER


class AuthorizationError(Exception):
    """Raised when an actor lacks the required role or outlet scope."""
    pass


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: str
    outlet_id: int | None = None

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(user_id=user.id, role=user.role, outlet_id=user.outlet_id)


def is_owner(actor: Actor) -> bool:
    return actor.role == ROLE_OWNER


def is_scoped_to_outlet(actor: Actor, outlet_id: int | None) -> bool:
    if outlet_id is None or actor.outlet_id is None:
        return False
    return actor.outlet_id == outlet_id


def can_manage_outlet(actor: Actor, outlet_id: int | None) -> bool:
    return is_owner(actor) or is_scoped_to_outlet(actor, outlet_id)


def require_owner(actor: Actor, action: str = "perform this action") -> None:
    if not is_owner(actor):
        raise AuthorizationError(f"Only owners can {action}")


def require_outlet_access(actor: Actor, outlet_id: int | None) -> None:
    if not can_manage_outlet(actor, outlet_id):
        raise AuthorizationError(f"You do not have access to outlet {outlet_id}")


def visible_outlet_id(actor: Actor, requested: int | None) -> int | None:
    """
    Resolve the outlet filter for a listing.

    Owners get what they asked for (None = all outlets); everyone else is
    pinned to their own outlet regardless of the request.
    """
    if is_owner(actor):
        return requested
    if actor.outlet_id is None:
        raise AuthorizationError("User is not assigned to an outlet")
    return actor.outlet_id
