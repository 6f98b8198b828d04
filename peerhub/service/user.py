"""
Service layer for user profiles. Profiles are created by the authentication
service; the functions here read them, and `create` exists for setup tooling
and tests.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from peerhub.core.uuid import UUID
from peerhub.database.user import User


class UserNotFound(Exception):
    pass


class UserExistsError(Exception):
    pass


async def create(
    email: str,
    full_name: str | None,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    is_active: bool = True,
) -> User:
    """
    Creates a user profile.

    Raises
    ------
    UserExistsError
        If a profile with this email already exists.
    """
    email = email.strip().lower()
    log = log.bind(email=email)

    user = User(email=email, full_name=full_name, is_active=is_active)

    try:
        conn.add(user)
        await conn.flush()
    except IntegrityError:
        await log.ainfo("user.create.exists")
        raise UserExistsError(f"User with email {email} already exists")

    await log.ainfo("user.created", user_id=user.user_id)

    return user


async def read_by_id(user_id: UUID, conn: AsyncSession) -> User:
    res = await conn.get(User, user_id)

    if res is None:
        raise UserNotFound(f"User with ID {user_id} not found in the database")

    return res


async def delete(user_id: UUID, conn: AsyncSession, log: FilteringBoundLogger):
    """
    Deletes the profile row only. Memberships and likes that reference it are
    left behind and will show up in the integrity report.
    """
    user = await read_by_id(user_id=user_id, conn=conn)
    await conn.delete(user)
    await conn.flush()
    await log.ainfo("user.deleted", user_id=user_id)
