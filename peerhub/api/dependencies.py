"""
Dependencies used by the API.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from peerhub.config.managers import AsyncSessionManager
from peerhub.config.settings import Settings
from peerhub.core.uuid import UUID, parse_user_id


@lru_cache
def SETTINGS():
    return Settings()


@lru_cache
def DATABASE_MANAGER() -> AsyncSessionManager:
    return SETTINGS().async_manager()


def get_session_manager() -> AsyncSessionManager:
    return DATABASE_MANAGER()


async def get_async_session(
    manager: Annotated[AsyncSessionManager, Depends(get_session_manager)],
):
    async with manager.session() as session:
        async with session.begin():
            yield session


def logger():
    return get_logger()


def requesting_user(
    x_user_id: Annotated[str | None, Header()] = None,
) -> UUID | None:
    """
    The caller's user id, as forwarded by the authentication gateway in the
    `X-User-Id` header. Missing or malformed ids mean an anonymous caller.
    """
    return parse_user_id(x_user_id)


SessionManagerDependency = Annotated[AsyncSessionManager, Depends(get_session_manager)]
DatabaseDependency = Annotated[AsyncSession, Depends(get_async_session)]
LoggerDependency = Annotated[FilteringBoundLogger, Depends(logger)]
RequestingUserDependency = Annotated[UUID | None, Depends(requesting_user)]
