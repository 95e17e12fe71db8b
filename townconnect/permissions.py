"""User roles and the capabilities each role grants."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from .errors import PermissionDeniedError


class UserRole(StrEnum):
    RESIDENT = "resident"
    BUSINESS_OWNER = "business_owner"
    EVENT_ORGANIZER = "event_organizer"
    COMMUNITY_LEADER = "community_leader"
    ADMIN = "admin"

    @property
    def info(self) -> RoleInfo:
        return ROLE_INFO[self]


class Permission(StrEnum):
    VIEW_EVENTS = "view_events"
    CREATE_EVENTS = "create_events"
    EDIT_OWN_EVENTS = "edit_own_events"
    EDIT_ALL_EVENTS = "edit_all_events"
    DELETE_OWN_EVENTS = "delete_own_events"
    DELETE_ALL_EVENTS = "delete_all_events"
    VIEW_USERS = "view_users"
    EDIT_OWN_PROFILE = "edit_own_profile"
    EDIT_ALL_PROFILES = "edit_all_profiles"
    MODERATE_CONTENT = "moderate_content"
    MANAGE_USERS = "manage_users"
    SYSTEM_ADMIN = "system_admin"
    PROMOTE_EVENTS = "promote_events"
    ACCESS_ANALYTICS = "access_analytics"


@dataclass(frozen=True)
class RoleInfo:
    display_name: str
    description: str


ROLE_INFO: dict[UserRole, RoleInfo] = {
    UserRole.RESIDENT: RoleInfo(
        "Resident", "Connect with neighbors and join local events"
    ),
    UserRole.BUSINESS_OWNER: RoleInfo(
        "Business Owner", "Promote your business and engage with the community"
    ),
    UserRole.EVENT_ORGANIZER: RoleInfo(
        "Event Organizer", "Create and manage community events"
    ),
    UserRole.COMMUNITY_LEADER: RoleInfo(
        "Community Leader", "Lead community initiatives and moderate content"
    ),
    UserRole.ADMIN: RoleInfo("Administrator", "Full system administration access"),
}

_RESIDENT = frozenset(
    {
        Permission.VIEW_EVENTS,
        Permission.CREATE_EVENTS,
        Permission.EDIT_OWN_EVENTS,
        Permission.DELETE_OWN_EVENTS,
        Permission.VIEW_USERS,
        Permission.EDIT_OWN_PROFILE,
    }
)
_ORGANIZER = _RESIDENT | {Permission.PROMOTE_EVENTS, Permission.ACCESS_ANALYTICS}

PERMISSION_SETS: dict[UserRole, frozenset[Permission]] = {
    UserRole.RESIDENT: _RESIDENT,
    UserRole.BUSINESS_OWNER: _ORGANIZER,
    UserRole.EVENT_ORGANIZER: _ORGANIZER,
    UserRole.COMMUNITY_LEADER: _ORGANIZER
    | {Permission.MODERATE_CONTENT, Permission.EDIT_ALL_EVENTS},
    UserRole.ADMIN: frozenset(Permission),
}


class Actor(Protocol):
    id: str
    role: UserRole


def permissions_for(role: UserRole | str) -> frozenset[Permission]:
    return PERMISSION_SETS[UserRole(role)]


def has_permission(role: UserRole | str, permission: Permission) -> bool:
    return permission in permissions_for(role)


def require_permission(actor: Actor, permission: Permission) -> None:
    """Raise ``PermissionDeniedError`` unless the actor's role grants ``permission``."""
    if not has_permission(actor.role, permission):
        raise PermissionDeniedError(actor.id, permission.value)


def can_manage(
    actor: Actor, owner_id: str, *, own: Permission, any_: Permission
) -> bool:
    """Return True when the actor may act on something owned by ``owner_id``.

    Owners need the ``own`` capability; everyone else needs ``any_``.
    """
    if actor.id == owner_id and has_permission(actor.role, own):
        return True
    return has_permission(actor.role, any_)


def require_manage(
    actor: Actor, owner_id: str, *, own: Permission, any_: Permission
) -> None:
    if not can_manage(actor, owner_id, own=own, any_=any_):
        needed = own if actor.id == owner_id else any_
        raise PermissionDeniedError(actor.id, needed.value)
