"""
Service layer for destructive bulk cleanup and integrity reporting.

The destructive operations (`clear_all_posts`, `clear_all_groups`,
`perform_complete_cleanup`) are gated on `can_manage_groups`; a denial is
returned as a failed result and nothing is written. Once authorized, each
operation deletes children before parents inside one transaction, so either
everything is removed or, on a store failure, nothing is.

`validate_data_integrity` and `get_cleanup_status` are read-only and open to
any caller. They re-read the store on every call; each report comes from a
single statement, but rows written concurrently by other services may make a
report slightly stale by the time it is returned.
"""

import asyncio
from dataclasses import dataclass

from structlog.typing import FilteringBoundLogger

from peerhub.config.managers import AsyncSessionManager
from peerhub.core.cleanup import (
    ORPHAN_KINDS,
    CleanupResult,
    CleanupStatus,
    CommunityResetResult,
    CompleteCleanupResult,
    IntegrityValidationResult,
)
from peerhub.core.clock import utcnow
from peerhub.core.permissions import PermissionResult
from peerhub.core.uuid import UUID

from . import initial_groups as initial_groups_service
from . import permissions as permissions_service
from . import store
from .store import RecordKind, StoreFailure

DENIED_CLEANUP_ISSUE = "Permission denied for cleanup operations"


@dataclass(frozen=True)
class _CascadePlan:
    """
    A two-phase delete: every child row, then every parent row.
    """

    parent: RecordKind
    child: RecordKind
    noun: str


POSTS_PLAN = _CascadePlan(
    parent=RecordKind.POSTS, child=RecordKind.POST_LIKES, noun="posts"
)
GROUPS_PLAN = _CascadePlan(
    parent=RecordKind.GROUPS, child=RecordKind.GROUP_MEMBERSHIPS, noun="groups"
)


async def authorize(
    user_id: UUID | None,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> PermissionResult:
    """
    Run the `can_manage_groups` check in its own read-only session.

    Raises
    ------
    StoreFailure
        If the role store could not be read.
    """
    async with manager.session() as conn:
        async with conn.begin():
            return await permissions_service.can_manage_groups(
                user_id=user_id, conn=conn, log=log
            )


async def _cascade_delete(
    plan: _CascadePlan,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> int:
    async with manager.session() as conn:
        async with store.exclusive_transaction(plan.parent, conn, log):
            # After the parents are gone every child row would be an orphan,
            # so all children go, including ones that were already orphaned
            # before this call.
            children = await store.delete_all(plan.child, conn, log)
            parents = await store.delete_all(plan.parent, conn, log)

    await log.ainfo(
        f"cleanup.{plan.noun}.committed",
        deleted_children=children,
        deleted_parents=parents,
    )

    return parents


async def _clear(
    plan: _CascadePlan,
    user_id: UUID | None,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> CleanupResult:
    log = log.bind(user_id=user_id, operation=f"clear_{plan.noun}")

    try:
        permission = await authorize(user_id=user_id, manager=manager, log=log)
    except StoreFailure as e:
        return CleanupResult(success=False, deleted_count=0, message=str(e))

    if not permission.allowed:
        await log.awarning(f"cleanup.{plan.noun}.denied", reason=permission.reason)
        return CleanupResult.denied(permission.reason)

    # The transaction is shielded: once the delete has started, cancelling the
    # caller no longer interrupts it.
    task = asyncio.ensure_future(
        _guarded_cascade_delete(plan=plan, manager=manager, log=log)
    )
    return await asyncio.shield(task)


async def _guarded_cascade_delete(
    plan: _CascadePlan,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> CleanupResult:
    try:
        async with store.store_errors(f"delete {plan.noun}", log):
            deleted = await _cascade_delete(plan=plan, manager=manager, log=log)
    except StoreFailure as e:
        # The transaction was rolled back, so nothing was removed.
        return CleanupResult(success=False, deleted_count=0, message=str(e))

    return CleanupResult(
        success=True,
        deleted_count=deleted,
        message=f"Successfully deleted {deleted} {plan.noun} and related data",
    )


async def clear_all_posts(
    user_id: UUID | None,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> CleanupResult:
    """
    Delete every post together with every post like.

    Parameters
    ----------
    user_id: UUID | None
        The user requesting the cleanup. Must be allowed to manage groups.
    manager: AsyncSessionManager
        Session manager for the store; the operation opens its own
        transactions.
    log: FilteringBoundLogger
        Logger instance.

    Returns
    -------
    CleanupResult
        `deleted_count` is the number of posts removed. On denial or store
        failure `success` is False, `deleted_count` is 0 and nothing was
        deleted.
    """
    return await _clear(POSTS_PLAN, user_id=user_id, manager=manager, log=log)


async def clear_all_groups(
    user_id: UUID | None,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> CleanupResult:
    """
    Delete every group together with every group membership. Same contract
    as `clear_all_posts`, with `deleted_count` counting groups.
    """
    return await _clear(GROUPS_PLAN, user_id=user_id, manager=manager, log=log)


async def validate_data_integrity(
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> IntegrityValidationResult:
    """
    Scan for orphaned records: post likes without a post, and group
    memberships without a group or without a user. An empty store is valid.

    Raises
    ------
    StoreFailure
        If the store could not be read. A failed scan is never reported as
        valid.
    """
    timestamp = utcnow()

    async with store.store_errors("validate data integrity", log):
        async with manager.session() as conn:
            async with conn.begin():
                orphans = await store.orphan_counts(conn, log)

    result = IntegrityValidationResult.from_orphan_counts(orphans, timestamp)

    if result.is_valid:
        await log.ainfo("cleanup.integrity.valid")
    else:
        await log.awarning(
            "cleanup.integrity.violations",
            issues=result.issues,
            **result.orphaned_records,
        )

    return result


async def get_cleanup_status(
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> CleanupStatus:
    """
    Count posts, groups, post likes and group memberships in one snapshot.

    Raises
    ------
    StoreFailure
        If the store could not be read.
    """
    last_updated = utcnow()

    async with store.store_errors("read cleanup status", log):
        async with manager.session() as conn:
            async with conn.begin():
                counts = await store.snapshot_counts(tuple(RecordKind), conn, log)

    status = CleanupStatus(
        posts_count=counts[RecordKind.POSTS],
        groups_count=counts[RecordKind.GROUPS],
        post_likes_count=counts[RecordKind.POST_LIKES],
        group_memberships_count=counts[RecordKind.GROUP_MEMBERSHIPS],
        last_updated=last_updated,
    )
    await log.adebug("cleanup.status", **status.model_dump(exclude={"last_updated"}))

    return status


def _failed_complete_cleanup(posts: CleanupResult, issue: str) -> CompleteCleanupResult:
    return CompleteCleanupResult(
        overall_success=False,
        posts_cleanup=posts,
        groups_cleanup=posts.model_copy(),
        integrity_validation=IntegrityValidationResult(
            is_valid=False,
            issues=[issue],
            orphaned_records={kind: 0 for kind in ORPHAN_KINDS},
        ),
    )


async def perform_complete_cleanup(
    user_id: UUID | None,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> CompleteCleanupResult:
    """
    Clear all posts, then all groups, then validate integrity.

    Posts and groups share no foreign key, so a failure clearing one does not
    stop the attempt on the other. `overall_success` requires both clears to
    succeed and the final integrity check to be valid. If the user is not
    authorized, nothing is attempted and every sub-result carries the denial.
    """
    log = log.bind(user_id=user_id, operation="complete_cleanup")

    try:
        permission = await authorize(user_id=user_id, manager=manager, log=log)
    except StoreFailure as e:
        failed = CleanupResult(success=False, deleted_count=0, message=str(e))
        return _failed_complete_cleanup(failed, str(e))

    if not permission.allowed:
        await log.awarning("cleanup.complete.denied", reason=permission.reason)
        return _failed_complete_cleanup(
            CleanupResult.denied(permission.reason), DENIED_CLEANUP_ISSUE
        )

    posts_cleanup = await clear_all_posts(user_id=user_id, manager=manager, log=log)
    groups_cleanup = await clear_all_groups(user_id=user_id, manager=manager, log=log)

    try:
        integrity_validation = await validate_data_integrity(manager=manager, log=log)
    except StoreFailure as e:
        integrity_validation = IntegrityValidationResult(
            is_valid=False,
            issues=[str(e)],
            orphaned_records={kind: 0 for kind in ORPHAN_KINDS},
        )

    overall_success = (
        posts_cleanup.success
        and groups_cleanup.success
        and integrity_validation.is_valid
    )

    await log.ainfo(
        "cleanup.complete.finished",
        overall_success=overall_success,
        deleted_posts=posts_cleanup.deleted_count,
        deleted_groups=groups_cleanup.deleted_count,
    )

    return CompleteCleanupResult(
        overall_success=overall_success,
        posts_cleanup=posts_cleanup,
        groups_cleanup=groups_cleanup,
        integrity_validation=integrity_validation,
    )


async def perform_community_reset(
    user_id: UUID | None,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> CommunityResetResult:
    """
    Wipe the community (complete cleanup) and seed the initial groups, created
    by `user_id`, then validate integrity again.
    """
    log = log.bind(user_id=user_id, operation="community_reset")

    cleanup = await perform_complete_cleanup(user_id=user_id, manager=manager, log=log)

    if not (cleanup.posts_cleanup.success and cleanup.groups_cleanup.success):
        await log.awarning("cleanup.reset.cleanup_failed")
        return CommunityResetResult(
            cleanup=cleanup,
            created_groups=0,
            errors=[cleanup.posts_cleanup.message, cleanup.groups_cleanup.message],
            integrity_validation=None,
            success=False,
        )

    seeded = await initial_groups_service.create_initial_groups(
        user_id=user_id, manager=manager, log=log
    )

    try:
        integrity_validation = await validate_data_integrity(manager=manager, log=log)
    except StoreFailure as e:
        seeded.errors.append(str(e))
        integrity_validation = None

    success = (
        not seeded.errors
        and integrity_validation is not None
        and integrity_validation.is_valid
    )
    await log.ainfo(
        "cleanup.reset.finished", success=success, created_groups=len(seeded.created)
    )

    return CommunityResetResult(
        cleanup=cleanup,
        created_groups=len(seeded.created),
        errors=seeded.errors,
        integrity_validation=integrity_validation,
        success=success,
    )
