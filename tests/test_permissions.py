"""Tests for the role-id → permission mapping."""

import pytest

from conclave.auth.permissions import (
    ADMIN_HOME,
    DEFAULT_ROLE_TIERS,
    MEMBER_HOME,
    MODERATOR_HOME,
    landing_page,
    permission_level,
    resolve_permissions,
)

ADMIN_TIER_ROLES = sorted(DEFAULT_ROLE_TIERS.admin_tier)
MODERATOR_TIER_ROLES = sorted(DEFAULT_ROLE_TIERS.moderator_tier)
OWNER = next(iter(DEFAULT_ROLE_TIERS.owner))
HEAD_MOD = next(iter(DEFAULT_ROLE_TIERS.head_mod))


class TestResolvePermissions:
    def test_no_roles_only_dashboard(self):
        perms = resolve_permissions([])
        assert perms.can_access_dashboard
        assert not perms.is_staff
        assert not perms.is_admin
        assert not perms.is_moderator
        assert not perms.can_access_sanctum
        assert not perms.can_access_throne_room

    def test_unknown_roles_ignored(self):
        perms = resolve_permissions(["1", "2", "3"])
        assert perms.can_access_dashboard
        assert not perms.is_staff

    @pytest.mark.parametrize("role", ADMIN_TIER_ROLES)
    def test_admin_tier_is_admin_and_staff(self, role: str):
        perms = resolve_permissions([role, "999"])
        assert perms.is_admin
        assert perms.is_staff
        assert perms.can_access_throne_room
        assert perms.can_access_sanctum
        assert perms.can_access_dashboard

    @pytest.mark.parametrize("role", MODERATOR_TIER_ROLES)
    def test_moderator_tier_is_staff_not_admin(self, role: str):
        perms = resolve_permissions([role])
        assert perms.is_moderator
        assert perms.is_staff
        assert not perms.is_admin
        assert perms.can_access_sanctum
        assert not perms.can_access_throne_room

    def test_deterministic(self):
        roles = [OWNER, HEAD_MOD]
        assert resolve_permissions(roles) == resolve_permissions(list(reversed(roles)))

    def test_camel_case_dump(self):
        dumped = resolve_permissions([HEAD_MOD]).model_dump(by_alias=True)
        assert dumped == {
            "isStaff": True,
            "isAdmin": False,
            "isModerator": True,
            "canAccessDashboard": True,
            "canAccessSanctum": True,
            "canAccessThroneRoom": False,
        }


class TestPermissionLevel:
    def test_owner_beats_everything(self):
        assert permission_level([OWNER, HEAD_MOD]) == "owner"

    def test_admin(self):
        assert permission_level([next(iter(DEFAULT_ROLE_TIERS.admin))]) == "admin"

    def test_moderator(self):
        assert permission_level([HEAD_MOD]) == "moderator"

    def test_member_vs_guest(self):
        assert permission_level([], is_member=True) == "member"
        assert permission_level([], is_member=False) == "guest"


class TestLandingPage:
    def test_admin_tier_wins_over_moderator_tier(self):
        assert landing_page([HEAD_MOD, OWNER]) == ADMIN_HOME

    def test_moderator(self):
        assert landing_page([HEAD_MOD]) == MODERATOR_HOME

    def test_member(self):
        assert landing_page([]) == MEMBER_HOME
