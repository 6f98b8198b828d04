"""
The role store. Role assignments are written by an external role-management
process; permission checks only ever read them through
`list_active_role_assignments`.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from peerhub.core.clock import as_utc, utcnow
from peerhub.core.roles import Role, RoleAssignmentData
from peerhub.core.uuid import UUID
from peerhub.database.roles import RoleAssignment

from . import user as user_service


async def list_active_role_assignments(
    user_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    now: datetime | None = None,
) -> list[RoleAssignmentData]:
    """
    Get the assignments for a user that are active and not yet expired.

    Parameters
    ----------
    user_id: UUID
        The user to look up. Unknown users simply have no assignments.
    conn: AsyncSession
        The database session.
    log: FilteringBoundLogger
        Logger instance.
    now: datetime | None
        Evaluation time, defaulting to the current time.

    Returns
    -------
    list[RoleAssignmentData]
        The effective assignments, in grant order.
    """
    now = now or utcnow()
    log = log.bind(user_id=user_id)

    query = (
        select(RoleAssignment)
        .where(RoleAssignment.user_id == user_id)
        .where(RoleAssignment.is_active.is_(True))
        .order_by(RoleAssignment.granted_at)
    )
    result = await conn.execute(query)

    # Expiry is checked here rather than in SQL: SQLite drops the offset of
    # stored timestamps, so a textual comparison there is unreliable.
    assignments = [
        assignment
        for assignment in (row.to_core() for row in result.scalars().all())
        if assignment.is_effective(now)
    ]

    await log.adebug("roles.listed", number_of_assignments=len(assignments))

    return assignments


async def grant_role(
    user_id: UUID,
    role: Role,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    expires_at: datetime | None = None,
    granted_by: UUID | None = None,
) -> RoleAssignment:
    """
    Grant a role to a user. Re-granting a role the user already holds
    reactivates and updates the existing assignment.

    Raises
    ------
    user_service.UserNotFound
        If the user does not exist.
    """
    expires_at = as_utc(expires_at)
    log = log.bind(user_id=user_id, role=role.value, expires_at=expires_at)

    await user_service.read_by_id(user_id=user_id, conn=conn)

    result = await conn.execute(
        select(RoleAssignment)
        .where(RoleAssignment.user_id == user_id)
        .where(RoleAssignment.role == role.value)
    )
    assignment = result.scalars().first()

    if assignment is None:
        assignment = RoleAssignment(
            user_id=user_id,
            role=role.value,
            expires_at=expires_at,
            granted_by=granted_by,
        )
        conn.add(assignment)
    else:
        assignment.is_active = True
        assignment.expires_at = expires_at
        assignment.granted_by = granted_by
        assignment.granted_at = utcnow()

    await conn.flush()
    await log.ainfo("roles.granted")

    return assignment


async def revoke_role(
    user_id: UUID,
    role: Role,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> int:
    """
    Deactivate every assignment of `role` held by the user. Returns the
    number of assignments deactivated.
    """
    log = log.bind(user_id=user_id, role=role.value)

    result = await conn.execute(
        select(RoleAssignment)
        .where(RoleAssignment.user_id == user_id)
        .where(RoleAssignment.role == role.value)
        .where(RoleAssignment.is_active.is_(True))
    )
    assignments = result.scalars().all()

    for assignment in assignments:
        assignment.is_active = False

    await conn.flush()
    await log.ainfo("roles.revoked", number_of_assignments=len(assignments))

    return len(assignments)


async def find_users_with_role(
    role: Role, conn: AsyncSession, log: FilteringBoundLogger
) -> list[UUID]:
    """
    List the users holding an effective assignment of exactly `role`.
    """
    now = utcnow()
    result = await conn.execute(
        select(RoleAssignment)
        .where(RoleAssignment.role == role.value)
        .where(RoleAssignment.is_active.is_(True))
        .order_by(RoleAssignment.granted_at)
    )

    user_ids = []
    for assignment in result.scalars().all():
        if assignment.to_core().is_effective(now) and assignment.user_id not in user_ids:
            user_ids.append(assignment.user_id)

    await log.adebug("roles.users_found", role=role.value, number_of_users=len(user_ids))

    return user_ids
