"""
The record-store contract used by the cleanup service: filtered deletes and
counts, existence checks, and the single-statement snapshot queries used for
status and integrity reports.

Every function here runs inside the caller's session and transaction.
"""

import asyncio
import enum
import weakref
import zlib
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from peerhub.core.cleanup import (
    ORPHANED_GROUP_MEMBERSHIPS,
    ORPHANED_MEMBERSHIP_USERS,
    ORPHANED_POST_LIKES,
)
from peerhub.core.uuid import UUID
from peerhub.database.group import Group, GroupMembership
from peerhub.database.post import Post, PostLike
from peerhub.database.user import User


class StoreFailure(Exception):
    """
    A connectivity, timeout or constraint failure in the persistent store.
    The message is safe to show to users; the underlying error is logged.
    """


class RecordKind(str, enum.Enum):
    POSTS = "posts"
    GROUPS = "groups"
    POST_LIKES = "post_likes"
    GROUP_MEMBERSHIPS = "group_memberships"

    @property
    def table(self) -> Any:
        return _TABLES[self]

    @property
    def primary_key(self) -> Any:
        return _PRIMARY_KEYS[self]


_TABLES = {
    RecordKind.POSTS: Post,
    RecordKind.GROUPS: Group,
    RecordKind.POST_LIKES: PostLike,
    RecordKind.GROUP_MEMBERSHIPS: GroupMembership,
}

_PRIMARY_KEYS = {
    RecordKind.POSTS: Post.post_id,
    RecordKind.GROUPS: Group.group_id,
    RecordKind.POST_LIKES: PostLike.like_id,
    RecordKind.GROUP_MEMBERSHIPS: GroupMembership.membership_id,
}


@asynccontextmanager
async def store_errors(action: str, log: FilteringBoundLogger):
    """
    Translate driver and connection errors raised inside the block into a
    `StoreFailure` whose message does not leak store internals.
    """
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        await log.aerror("store.failure", action=action, error=repr(e))
        raise StoreFailure(f"Database error: unable to {action}.") from e


async def delete_all(
    kind: RecordKind,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    where: Any | None = None,
) -> int:
    """
    Delete every row of `kind` matching the optional `where` clause.

    Returns
    -------
    int
        The number of rows removed.
    """
    statement = delete(kind.table)
    if where is not None:
        statement = statement.where(where)

    result = await conn.execute(
        statement.execution_options(synchronize_session=False)
    )
    deleted = result.rowcount or 0

    await log.adebug("store.deleted", kind=kind.value, number_of_rows=deleted)

    return deleted


async def count(
    kind: RecordKind,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    where: Any | None = None,
) -> int:
    statement = select(func.count()).select_from(kind.table)
    if where is not None:
        statement = statement.where(where)

    result = (await conn.execute(statement)).scalar_one()
    await log.adebug("store.counted", kind=kind.value, number_of_rows=result)

    return result


async def exists(
    kind: RecordKind,
    record_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> bool:
    statement = select(
        select(kind.primary_key).where(kind.primary_key == record_id).exists()
    )
    found = bool((await conn.execute(statement)).scalar_one())
    await log.adebug("store.exists", kind=kind.value, record_id=record_id, found=found)

    return found


async def snapshot_counts(
    kinds: tuple[RecordKind, ...],
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> dict[RecordKind, int]:
    """
    Count several tables in a single SELECT of scalar subqueries, so that all
    counts come from the same statement snapshot.
    """
    statement = select(
        *(
            select(func.count())
            .select_from(kind.table)
            .scalar_subquery()
            .label(kind.value)
            for kind in kinds
        )
    )
    row = (await conn.execute(statement)).one()

    counts = {kind: int(getattr(row, kind.value) or 0) for kind in kinds}
    await log.adebug("store.snapshot", **{kind.value: n for kind, n in counts.items()})

    return counts


async def orphan_counts(conn: AsyncSession, log: FilteringBoundLogger) -> dict[str, int]:
    """
    Count dependent rows whose parent no longer exists, for each of
    PostLike -> Post, GroupMembership -> Group and GroupMembership -> User,
    in one statement.
    """
    orphaned_likes = (
        select(func.count())
        .select_from(PostLike)
        .where(~select(Post.post_id).where(Post.post_id == PostLike.post_id).exists())
        .scalar_subquery()
        .label(ORPHANED_POST_LIKES)
    )
    orphaned_memberships = (
        select(func.count())
        .select_from(GroupMembership)
        .where(
            ~select(Group.group_id)
            .where(Group.group_id == GroupMembership.group_id)
            .exists()
        )
        .scalar_subquery()
        .label(ORPHANED_GROUP_MEMBERSHIPS)
    )
    orphaned_membership_users = (
        select(func.count())
        .select_from(GroupMembership)
        .where(
            ~select(User.user_id).where(User.user_id == GroupMembership.user_id).exists()
        )
        .scalar_subquery()
        .label(ORPHANED_MEMBERSHIP_USERS)
    )

    row = (
        await conn.execute(
            select(orphaned_likes, orphaned_memberships, orphaned_membership_users)
        )
    ).one()

    counts = {
        ORPHANED_POST_LIKES: int(row[0] or 0),
        ORPHANED_GROUP_MEMBERSHIPS: int(row[1] or 0),
        ORPHANED_MEMBERSHIP_USERS: int(row[2] or 0),
    }
    await log.adebug("store.orphans", **counts)

    return counts


# asyncio locks are bound to the loop they are first contended in, so each
# running loop gets its own set.
_LOCAL_LOCKS: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()


def _local_lock(kind: RecordKind) -> asyncio.Lock:
    locks = _LOCAL_LOCKS.setdefault(asyncio.get_running_loop(), {})
    return locks.setdefault(kind, asyncio.Lock())


def _advisory_key(kind: RecordKind) -> int:
    # Stable across processes, unlike hash()
    return zlib.crc32(f"peerhub.cleanup.{kind.value}".encode())


@asynccontextmanager
async def exclusive_transaction(
    kind: RecordKind, conn: AsyncSession, log: FilteringBoundLogger
):
    """
    Begin a transaction on `conn` that no other destructive operation on the
    same kind of record can interleave with. The block commits on exit and
    rolls back if it raises.

    Callers on the same event loop queue on a local lock held until the
    commit has finished. On PostgreSQL a transaction-scoped advisory lock is
    also taken, which serialises callers in other loops and processes too.
    """
    log = log.bind(lock_kind=kind.value)
    lock = _local_lock(kind)

    async with lock:
        async with conn.begin():
            if conn.bind.dialect.name == "postgresql":
                await conn.execute(
                    text("SELECT pg_advisory_xact_lock(:key)"),
                    {"key": _advisory_key(kind)},
                )
            await log.adebug("store.lock.acquired")
            yield
