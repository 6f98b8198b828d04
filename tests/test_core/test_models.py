"""
Tests the core role hierarchy and result objects.
"""

from datetime import datetime, timedelta, timezone

import pytest

from peerhub.core.cleanup import (
    ORPHAN_KINDS,
    CleanupResult,
    IntegrityValidationResult,
)
from peerhub.core.permissions import MANAGE_GROUPS_MEMBER_REASON, PermissionResult
from peerhub.core.roles import Role, RoleAssignmentData
from peerhub.core.uuid import parse_user_id, uuid7


def test_role_ranks_are_totally_ordered():
    ordered = [Role.GUEST, Role.MEMBER, Role.ADMIN, Role.SUPER_ADMIN]

    assert [role.rank for role in ordered] == sorted(role.rank for role in ordered)
    assert Role.SUPER_ADMIN.outranks(Role.ADMIN)
    assert not Role.MEMBER.outranks(Role.MEMBER)


@pytest.mark.parametrize(
    "stored, expected",
    [
        ("admin", Role.ADMIN),
        ("SUPER_ADMIN", Role.SUPER_ADMIN),
        (" member ", Role.MEMBER),
        ("user", Role.MEMBER),
        ("moderator", Role.MEMBER),
        ("owner", Role.GUEST),
    ],
)
def test_role_from_store(stored, expected):
    assert Role.from_store(stored) == expected


def test_highest_role():
    assert Role.highest([Role.MEMBER, Role.SUPER_ADMIN, Role.ADMIN]) == Role.SUPER_ADMIN
    assert Role.highest([]) == Role.GUEST


def test_assignment_expiry():
    now = datetime.now(tz=timezone.utc)
    assignment = RoleAssignmentData(
        assignment_id=uuid7(),
        user_id=uuid7(),
        role=Role.ADMIN,
        is_active=True,
        granted_at=now - timedelta(days=2),
        expires_at=now - timedelta(days=1),
    )

    assert not assignment.is_effective(now)
    assert assignment.is_effective(now - timedelta(days=1, hours=1))

    # Naive timestamps, as SQLite returns them, are read as UTC
    naive = assignment.model_copy(
        update={"expires_at": (now + timedelta(hours=1)).replace(tzinfo=None)}
    )
    assert naive.is_effective(now)

    inactive = assignment.model_copy(update={"is_active": False, "expires_at": None})
    assert not inactive.is_effective(now)


def test_permission_results():
    assert PermissionResult.allow().reason is None

    denied = PermissionResult.deny(MANAGE_GROUPS_MEMBER_REASON)
    assert not denied.allowed
    assert denied.reason == "Only administrators can manage groups."


def test_denied_cleanup_result():
    result = CleanupResult.denied("Only administrators can manage groups.")

    assert not result.success
    assert result.deleted_count == 0
    assert result.message == "Permission denied: Only administrators can manage groups."


def test_integrity_result_from_counts():
    timestamp = datetime.now(tz=timezone.utc)

    clean = IntegrityValidationResult.from_orphan_counts({}, timestamp)
    assert clean.is_valid
    assert clean.issues == []
    assert clean.orphaned_records == {kind: 0 for kind in ORPHAN_KINDS}

    dirty = IntegrityValidationResult.from_orphan_counts(
        {"post_likes": 2, "group_memberships": 0, "group_membership_users": 1},
        timestamp,
    )
    assert not dirty.is_valid
    assert dirty.issues == [
        "Found 2 orphaned post likes",
        "Found 1 group memberships referencing missing users",
    ]
    assert dirty.timestamp == timestamp


def test_parse_user_id():
    user_id = uuid7()

    assert parse_user_id(str(user_id)) == user_id
    assert parse_user_id(user_id) == user_id
    assert parse_user_id(None) is None
    assert parse_user_id("not-a-uuid") is None
    assert parse_user_id("") is None
