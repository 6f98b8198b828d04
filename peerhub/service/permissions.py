"""
Service layer for authorization. Every mutating operation in the package goes
through `can_manage_groups`; the other checks here are derived from the same
role resolution and never look at role assignments on their own.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from peerhub.core.permissions import (
    CREATE_POST_GUEST_REASON,
    DELETE_POST_REASON,
    MANAGE_GROUPS_GUEST_REASON,
    MANAGE_GROUPS_MEMBER_REASON,
    UNKNOWN_PERMISSION_REASON,
    VIEW_MEMBERS_GUEST_REASON,
    PermissionResult,
)
from peerhub.core.roles import ADMINISTRATIVE_ROLES, Role
from peerhub.core.uuid import UUID
from peerhub.database.user import User

from . import roles as role_store
from .store import store_errors


async def get_user_role(
    user_id: UUID | None,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Role:
    """
    Resolve the effective role of a user: the highest ranked of their active,
    unexpired role assignments.

    Unknown users, deactivated profiles and a missing `user_id` all resolve to
    `Role.GUEST`; the absence of privilege is itself the answer.

    Raises
    ------
    StoreFailure
        If the role store could not be read.
    """
    if user_id is None:
        await log.adebug("permissions.role.anonymous")
        return Role.GUEST

    log = log.bind(user_id=user_id)

    async with store_errors("read user roles", log):
        profile = await conn.get(User, user_id)

        if profile is None or not profile.is_active:
            await log.ainfo("permissions.role.unknown_or_inactive_user")
            return Role.GUEST

        assignments = await role_store.list_active_role_assignments(
            user_id=user_id, conn=conn, log=log
        )

    role = Role.highest(assignment.role for assignment in assignments)
    await log.adebug("permissions.role.resolved", role=role.value)

    return role


async def can_manage_groups(
    user_id: UUID | None,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> PermissionResult:
    """
    The authorization gate for creating, updating and deleting groups, and for
    all destructive cleanup operations.

    Administrators (`admin` or `super_admin`) are allowed. Members and guests
    are denied with distinct, user-facing reasons.
    """
    role = await get_user_role(user_id=user_id, conn=conn, log=log)
    log = log.bind(user_id=user_id, role=role.value)

    if role in ADMINISTRATIVE_ROLES:
        result = PermissionResult.allow()
    elif role == Role.MEMBER:
        result = PermissionResult.deny(MANAGE_GROUPS_MEMBER_REASON)
    else:
        result = PermissionResult.deny(MANAGE_GROUPS_GUEST_REASON)

    await log.ainfo("permissions.manage_groups", allowed=result.allowed)

    return result


async def can_create_post(
    user_id: UUID | None,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> PermissionResult:
    role = await get_user_role(user_id=user_id, conn=conn, log=log)

    if role == Role.GUEST:
        return PermissionResult.deny(CREATE_POST_GUEST_REASON)

    return PermissionResult.allow()


async def can_view_members(
    user_id: UUID | None,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> PermissionResult:
    role = await get_user_role(user_id=user_id, conn=conn, log=log)

    if role == Role.GUEST:
        return PermissionResult.deny(VIEW_MEMBERS_GUEST_REASON)

    return PermissionResult.allow()


async def can_delete_post(
    user_id: UUID | None,
    post_author_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> PermissionResult:
    """
    Administrators may delete any post; members only their own.
    """
    role = await get_user_role(user_id=user_id, conn=conn, log=log)

    if role in ADMINISTRATIVE_ROLES:
        return PermissionResult.allow()

    if role == Role.MEMBER and user_id == post_author_id:
        return PermissionResult.allow()

    return PermissionResult.deny(DELETE_POST_REASON)


async def is_authenticated(
    user_id: UUID | None,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> bool:
    return (await get_user_role(user_id=user_id, conn=conn, log=log)) != Role.GUEST


PERMISSION_CHECKS = {
    "createPost": can_create_post,
    "manageGroups": can_manage_groups,
    "viewMembers": can_view_members,
}


async def check_multiple_permissions(
    user_id: UUID | None,
    permissions: list[str],
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> dict[str, PermissionResult]:
    """
    Evaluate several named permissions for one user, for screens that need to
    decide which controls to show. Names not in `PERMISSION_CHECKS` are denied.
    """
    results = {}

    for permission in permissions:
        check = PERMISSION_CHECKS.get(permission)

        if check is None:
            results[permission] = PermissionResult.deny(UNKNOWN_PERMISSION_REASON)
            continue

        results[permission] = await check(user_id=user_id, conn=conn, log=log)

    return results
