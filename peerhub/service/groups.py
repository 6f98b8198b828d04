"""
Service layer for groups.
"""

import re

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from peerhub.core.clock import utcnow
from peerhub.core.group import GroupCreationData, GroupUpdateData
from peerhub.core.uuid import UUID
from peerhub.database.group import Group, GroupMembership

from . import permissions as permissions_service
from . import user as user_service

MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 2000
MAX_LINK_LENGTH = 2000

EXTERNAL_LINK_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


class GroupNotFound(Exception):
    pass


class GroupExistsError(Exception):
    pass


class GroupValidationError(Exception):
    pass


class PermissionDenied(Exception):
    """
    Raised by the group service when `can_manage_groups` denies the caller.
    The message is the user-facing denial reason.
    """


def validate_external_link(url: str):
    """
    Raises
    ------
    GroupValidationError
        If the link is not an http(s) URL or is too long.
    """
    if not EXTERNAL_LINK_PATTERN.match(url):
        raise GroupValidationError("External link must be a valid HTTP or HTTPS URL")

    if len(url) > MAX_LINK_LENGTH:
        raise GroupValidationError("External link URL is too long")


def validate_name(name: str | None):
    if not name or not name.strip():
        raise GroupValidationError("Group name is required")

    if len(name.strip()) > MAX_NAME_LENGTH:
        raise GroupValidationError(
            f"Group name cannot exceed {MAX_NAME_LENGTH} characters"
        )


def validate_description(description: str | None):
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise GroupValidationError(
            f"Group description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
        )


def validate_group_data(data: GroupCreationData):
    """
    Check a group creation request.

    Raises
    ------
    GroupValidationError
        With a user-facing message describing the first problem found.
    """
    validate_name(data.name)
    validate_description(data.description)

    if data.external_link and data.external_link.strip():
        validate_external_link(data.external_link.strip())


def _clean(value: str | None) -> str | None:
    if value is None:
        return None

    return value.strip() or None


async def _require_manager(
    user_id: UUID | None, conn: AsyncSession, log: FilteringBoundLogger
):
    permission = await permissions_service.can_manage_groups(
        user_id=user_id, conn=conn, log=log
    )

    if not permission.allowed:
        await log.ainfo("group.permission_denied", reason=permission.reason)
        raise PermissionDenied(permission.reason)


async def create(
    user_id: UUID | None,
    data: GroupCreationData,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Create a new group.

    Parameters
    ----------
    user_id: UUID | None
        The user creating the group. Must be allowed to manage groups.
    data: GroupCreationData
        Name, description and external link of the new group.

    Raises
    ------
    PermissionDenied
        If the user may not manage groups.
    GroupValidationError
        If the request is malformed (empty name, bad link, ...).
    GroupExistsError
        If a group with this name already exists.
    """
    log = log.bind(user_id=user_id, group_name=data.name)

    await _require_manager(user_id=user_id, conn=conn, log=log)

    try:
        validate_group_data(data)
    except GroupValidationError as e:
        await log.ainfo("group.invalid", error=str(e))
        raise e

    name = data.name.strip()

    existing = await conn.execute(select(Group.group_id).where(Group.name == name))
    if existing.scalar_one_or_none() is not None:
        await log.ainfo("group.exists")
        raise GroupExistsError(f"A group with the name {name} already exists.")

    now = utcnow()
    group = Group(
        name=name,
        description=_clean(data.description),
        external_link=_clean(data.external_link),
        created_by=user_id,
        created_at=now,
        updated_at=now,
    )

    try:
        conn.add(group)
        await conn.flush()
    except IntegrityError as e:
        log = log.bind(error=repr(e))
        await log.ainfo("group.exists")
        raise GroupExistsError(f"A group with the name {name} already exists.")

    await log.ainfo("group.created", group_id=group.group_id)

    return group


async def get_group_list(
    conn: AsyncSession,
    log: FilteringBoundLogger,
    include_inactive: bool = False,
) -> list[Group]:
    """
    Get a list of groups, oldest first.

    Parameters
    ----------
    conn: AsyncSession
        The database session.
    log: FilteringBoundLogger
        Logger instance.
    include_inactive: bool
        Whether to include deactivated groups.
    """
    query = select(Group).order_by(Group.created_at)
    if not include_inactive:
        query = query.where(Group.is_active.is_(True))

    result = await conn.execute(query)
    groups = list(result.scalars().all())

    await log.adebug("group.listed", number_of_groups=len(groups))

    return groups


async def search_groups(
    query: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> list[Group]:
    """
    Case-insensitive substring search over the names and descriptions of
    active groups, newest first. A blank query matches every active group.
    """
    pattern = f"%{query.strip()}%"

    result = await conn.execute(
        select(Group)
        .where(Group.is_active.is_(True))
        .where(or_(Group.name.ilike(pattern), Group.description.ilike(pattern)))
        .order_by(Group.created_at.desc())
    )
    groups = list(result.scalars().all())

    await log.adebug("group.searched", query=query, number_of_groups=len(groups))

    return groups


async def read_by_id(
    group_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Read a group by its ID.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    """
    log = log.bind(group_id=group_id)
    group = await conn.get(Group, group_id)
    if not group:
        await log.ainfo("group.not_found")
        raise GroupNotFound(f"Group with id {group_id} not found")
    await log.adebug("group.found")
    return group


async def read_by_name(
    name: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Read a group by its exact (trimmed) name.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    """
    name = name.strip()
    log = log.bind(group_name=name)
    result = await conn.execute(select(Group).where(Group.name == name))
    group = result.scalar_one_or_none()
    if not group:
        await log.ainfo("group.not_found")
        raise GroupNotFound(f"Group with name {name} not found")
    await log.adebug("group.found")
    return group


async def update(
    user_id: UUID | None,
    group_id: UUID,
    data: GroupUpdateData,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Update the given fields of a group. Fields left as `None` are unchanged;
    an empty description or link clears it.

    Raises
    ------
    PermissionDenied
        If the user may not manage groups.
    GroupNotFound
        If the group does not exist.
    GroupValidationError
        If a new value is malformed.
    """
    log = log.bind(user_id=user_id, group_id=group_id)

    await _require_manager(user_id=user_id, conn=conn, log=log)
    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    if data.name is not None:
        validate_name(data.name)
        group.name = data.name.strip()

    if data.description is not None:
        validate_description(data.description)
        group.description = _clean(data.description)

    if data.external_link is not None:
        if data.external_link.strip():
            validate_external_link(data.external_link.strip())
        group.external_link = _clean(data.external_link)

    if data.is_active is not None:
        group.is_active = data.is_active

    group.updated_at = utcnow()

    try:
        conn.add(group)
        await conn.flush()
    except IntegrityError:
        await log.ainfo("group.exists")
        raise GroupExistsError(f"A group with the name {group.name} already exists.")

    await log.ainfo("group.updated")

    return group


async def add_member(
    requested_by: UUID | None,
    group_id: UUID,
    user_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    role: str = "member",
) -> GroupMembership:
    """
    Add a user to a group, keeping the group's `member_count` in step.
    Adding an existing member returns their membership unchanged.

    Parameters
    ----------
    requested_by: UUID | None
        The user making the change. Must be allowed to manage groups.
    group_id: UUID
        The group to add to.
    user_id: UUID
        The new member.

    Raises
    ------
    PermissionDenied
        If `requested_by` may not manage groups.
    GroupNotFound
        If the group does not exist.
    user_service.UserNotFound
        If the user does not exist.
    """
    log = log.bind(group_id=group_id, user_id=user_id, requested_by=requested_by)

    await _require_manager(user_id=requested_by, conn=conn, log=log)
    group = await read_by_id(group_id, conn, log)
    await user_service.read_by_id(user_id=user_id, conn=conn)

    result = await conn.execute(
        select(GroupMembership)
        .where(GroupMembership.group_id == group_id)
        .where(GroupMembership.user_id == user_id)
    )
    membership = result.scalar_one_or_none()

    if membership is not None:
        await log.ainfo("group.user_already_member")
        return membership

    membership = GroupMembership(group_id=group_id, user_id=user_id, role=role)
    conn.add(membership)
    group.member_count += 1
    await conn.flush()
    await log.ainfo("group.user_added")

    return membership
