"""Role-id → permission tier mapping.

The single source of truth for which Discord roles count as staff. Every
route that needs to gate on staff/admin access goes through
``resolve_permissions`` rather than comparing role ids itself.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

PermissionLevel = Literal["guest", "member", "moderator", "admin", "owner"]


@dataclass(frozen=True)
class RoleTiers:
    """Static role-id allowlists grouped into tiers."""

    owner: frozenset[str]
    board: frozenset[str]
    head_admin: frozenset[str]
    admin: frozenset[str]
    head_mod: frozenset[str]
    moderator: frozenset[str]

    @property
    def admin_tier(self) -> frozenset[str]:
        return self.owner | self.board | self.head_admin | self.admin

    @property
    def moderator_tier(self) -> frozenset[str]:
        return self.head_mod | self.moderator

    @property
    def staff(self) -> frozenset[str]:
        return self.admin_tier | self.moderator_tier


DEFAULT_ROLE_TIERS = RoleTiers(
    owner=frozenset({"1369566988128751750"}),
    board=frozenset({"1369197369161154560"}),
    head_admin=frozenset({"1396459118025375784"}),
    admin=frozenset({"1370702703616856074"}),
    head_mod=frozenset({"1409148504026120293"}),
    moderator=frozenset({"1408079849377107989"}),
)

# Post-login landing pages.
ADMIN_HOME = "/throne-room"
MODERATOR_HOME = "/sanctum"
MEMBER_HOME = "/chambers/dashboard"


class Permissions(BaseModel):
    """Coarse access flags derived from a user's role ids."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    is_staff: bool = False
    is_admin: bool = False
    is_moderator: bool = False
    can_access_dashboard: bool = True
    can_access_sanctum: bool = False
    can_access_throne_room: bool = False


def resolve_permissions(
    roles: Iterable[str],
    tiers: RoleTiers = DEFAULT_ROLE_TIERS,
) -> Permissions:
    """Map a set of role ids to permission flags. Pure; no I/O.

    Every authenticated identity can reach the base dashboard, even with no
    recognised roles.
    """
    role_set = {str(r) for r in roles}
    is_admin = bool(role_set & tiers.admin_tier)
    is_moderator = bool(role_set & tiers.moderator_tier)
    is_staff = is_admin or is_moderator
    return Permissions(
        is_staff=is_staff,
        is_admin=is_admin,
        is_moderator=is_moderator,
        can_access_dashboard=True,
        can_access_sanctum=is_staff,
        can_access_throne_room=is_admin,
    )


def permission_level(
    roles: Iterable[str],
    *,
    is_member: bool = True,
    tiers: RoleTiers = DEFAULT_ROLE_TIERS,
) -> PermissionLevel:
    """Collapse role ids into the single highest tier the user holds."""
    role_set = {str(r) for r in roles}
    if role_set & tiers.owner:
        return "owner"
    if role_set & tiers.admin_tier:
        return "admin"
    if role_set & tiers.moderator_tier:
        return "moderator"
    return "member" if is_member else "guest"


def landing_page(roles: Iterable[str], tiers: RoleTiers = DEFAULT_ROLE_TIERS) -> str:
    """Where to send a user after login: admin tier wins over moderator tier."""
    permissions = resolve_permissions(roles, tiers)
    if permissions.is_admin:
        return ADMIN_HOME
    if permissions.is_moderator:
        return MODERATOR_HOME
    return MEMBER_HOME
