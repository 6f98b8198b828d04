"""
Core configuration. Tests run against a temporary SQLite database; set
PEERHUB_TEST_POSTGRES=1 to run them against a PostgreSQL container instead.
"""

import os
from datetime import datetime

import pytest
import pytest_asyncio
import structlog
from sqlalchemy import delete
from testcontainers.postgres import PostgresContainer

from peerhub.config.settings import Settings
from peerhub.core.roles import Role
from peerhub.database.group import Group, GroupMembership
from peerhub.database.post import Post, PostLike
from peerhub.database.roles import RoleAssignment
from peerhub.database.user import User
from peerhub.service import roles as role_store
from peerhub.service import user as user_service

# Children first, so that the wipe also works where foreign keys are enforced
WIPE_ORDER = (PostLike, Post, GroupMembership, Group, RoleAssignment, User)


@pytest_asyncio.fixture(scope="session")
def database_container(tmp_path_factory):
    if not os.environ.get("PEERHUB_TEST_POSTGRES"):
        yield {
            "database_type": "sqlite",
            "database_db": str(tmp_path_factory.mktemp("store") / "peerhub.db"),
        }
        return

    with PostgresContainer() as container:
        yield {
            "database_type": "postgres",
            "database_user": container.username,
            "database_password": container.password,
            "database_port": container.get_exposed_port(container.port),
            "database_host": "localhost",
            "database_db": container.dbname,
        }


@pytest_asyncio.fixture(scope="session")
def server_settings(database_container):
    yield Settings(**database_container)


@pytest_asyncio.fixture(scope="session")
def database(server_settings: Settings):
    server_settings.sync_manager().create_all()


@pytest_asyncio.fixture(scope="session")
async def session_manager(server_settings: Settings, database):
    manager = server_settings.async_manager()
    yield manager
    await manager.dispose()


@pytest_asyncio.fixture(scope="session")
def logger():
    yield structlog.get_logger()


@pytest_asyncio.fixture
async def store(session_manager):
    """
    The session manager, with every table emptied before the test.
    """
    async with session_manager.session() as conn:
        async with conn.begin():
            for table in WIPE_ORDER:
                await conn.execute(delete(table))

    yield session_manager


@pytest.fixture
def enforces_foreign_keys(store) -> bool:
    return store.dialect == "postgresql"


@pytest_asyncio.fixture
async def make_user(store, logger):
    """
    Factory creating a user profile holding the given roles.
    """
    counter = 0

    async def make(
        *roles: Role,
        is_active: bool = True,
        expires_at: datetime | None = None,
    ):
        nonlocal counter
        counter += 1

        async with store.session() as conn:
            async with conn.begin():
                user = await user_service.create(
                    email=f"user{counter}@peerhub.example",
                    full_name=f"Test User {counter}",
                    is_active=is_active,
                    conn=conn,
                    log=logger,
                )
                for role in roles:
                    await role_store.grant_role(
                        user_id=user.user_id,
                        role=role,
                        expires_at=expires_at,
                        conn=conn,
                        log=logger,
                    )

                return user.user_id

    yield make


@pytest_asyncio.fixture
async def admin(make_user):
    yield await make_user(Role.ADMIN)


@pytest_asyncio.fixture
async def super_admin(make_user):
    yield await make_user(Role.SUPER_ADMIN)


@pytest_asyncio.fixture
async def member(make_user):
    yield await make_user(Role.MEMBER)


@pytest_asyncio.fixture
async def guest(make_user):
    # A registered profile with no role assignments
    yield await make_user()


@pytest_asyncio.fixture
async def seed(store):
    """
    Factory filling the store with posts (one like each) and groups (one
    membership each), all owned by `owner`.
    """

    async def fill(owner, posts: int = 5, groups: int = 3):
        async with store.session() as conn:
            async with conn.begin():
                for index in range(posts):
                    post = Post(user_id=owner, content=f"Post number {index}")
                    conn.add(post)
                    await conn.flush()
                    conn.add(PostLike(post_id=post.post_id, user_id=owner))
                    post.likes_count = 1

                for index in range(groups):
                    group = Group(
                        name=f"Seeded group {index}", created_by=owner, member_count=1
                    )
                    conn.add(group)
                    await conn.flush()
                    conn.add(GroupMembership(group_id=group.group_id, user_id=owner))

    yield fill
