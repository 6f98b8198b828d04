"""
Session management for the relational store.
"""

from sqlalchemy import URL, Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, create_engine

import peerhub.database.meta  # noqa: F401 registers every table on the metadata


class SyncSessionManager:
    """
    A manager for synchronous sessions, used by setup tooling. Expected usage:

    manager = SyncSessionManager(conn_url)

    with manager.session() as conn:
        group = conn.get(Group, group_id)
    """

    connection_url: str | URL
    engine: Engine
    session: sessionmaker

    def __init__(self, connection_url: str | URL, echo: bool = False):
        self.connection_url = connection_url
        self.engine = create_engine(self.connection_url, echo=echo)
        self.session = sessionmaker(self.engine)

    def create_all(self):
        """
        Run the `SQLModel.metadata.create_all` migration tool. Required
        to set up the table schema.
        """
        with self.engine.begin() as conn:
            SQLModel.metadata.create_all(conn)


class AsyncSessionManager:
    """
    A manager for asynchronous sessions. Expected usage of this class to interact:

    manager = AsyncSessionManager(conn_url)

    async with manager.session() as conn:
        async with conn.begin():
            role = await permissions_service.get_user_role(user_id, conn=conn, log=log)

    The cleanup service takes the manager itself rather than a session, as it
    needs to open its own transactions.
    """

    connection_url: str | URL
    engine: AsyncEngine
    session: async_sessionmaker

    def __init__(
        self,
        connection_url: str | URL,
        echo: bool = False,
        statement_timeout_ms: int | None = None,
    ):
        self.connection_url = connection_url
        connect_args = {}
        if statement_timeout_ms is not None and "asyncpg" in str(connection_url):
            connect_args["server_settings"] = {
                "statement_timeout": str(int(statement_timeout_ms))
            }

        self.engine = create_async_engine(
            self.connection_url, echo=echo, connect_args=connect_args
        )
        self.session = async_sessionmaker(self.engine, expire_on_commit=False)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def create_all(self):
        """
        Run the `SQLModel.metadata.create_all` migration tool. Required
        to set up the table schema.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()
