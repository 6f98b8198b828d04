"""
Administration endpoints for bulk cleanup and integrity reporting.

Authorization denials on the destructive endpoints are part of the result
body (`success: false`), not HTTP errors, so dashboards can show the reason
verbatim.
"""

from fastapi import APIRouter

from peerhub.core.cleanup import (
    CleanupResult,
    CleanupStatus,
    CompleteCleanupResult,
    IntegrityValidationResult,
)
from peerhub.service import cleanup as cleanup_service

from .dependencies import (
    LoggerDependency,
    RequestingUserDependency,
    SessionManagerDependency,
)

admin_routes = APIRouter(tags=["Administration"])


@admin_routes.get(
    "/cleanup/status",
    summary="Current record counts",
    description=(
        "Count posts, groups, post likes and group memberships. Recomputed on "
        "every request; safe to poll."
    ),
    responses={
        200: {"description": "A point-in-time snapshot of the counts."},
        503: {"description": "The store could not be read."},
    },
)
async def status(
    manager: SessionManagerDependency, log: LoggerDependency
) -> CleanupStatus:
    result = await cleanup_service.get_cleanup_status(manager=manager, log=log)
    await log.ainfo("api.admin.cleanup_status")
    return result


@admin_routes.get(
    "/cleanup/integrity",
    summary="Check referential integrity",
    description="Report orphaned post likes and group memberships.",
    responses={
        200: {"description": "The integrity report."},
        503: {"description": "The store could not be read."},
    },
)
async def integrity(
    manager: SessionManagerDependency, log: LoggerDependency
) -> IntegrityValidationResult:
    result = await cleanup_service.validate_data_integrity(manager=manager, log=log)
    await log.ainfo("api.admin.integrity", is_valid=result.is_valid)
    return result


@admin_routes.post(
    "/cleanup/posts",
    summary="Delete all posts",
    description=(
        "Delete every post and every post like. Requires an administrator; "
        "the result reports how many posts were deleted."
    ),
)
async def clear_posts(
    user_id: RequestingUserDependency,
    manager: SessionManagerDependency,
    log: LoggerDependency,
) -> CleanupResult:
    log = log.bind(requesting_user=user_id)
    result = await cleanup_service.clear_all_posts(
        user_id=user_id, manager=manager, log=log
    )
    await log.ainfo("api.admin.clear_posts", success=result.success)
    return result


@admin_routes.post(
    "/cleanup/groups",
    summary="Delete all groups",
    description=(
        "Delete every group and every group membership. Requires an "
        "administrator; the result reports how many groups were deleted."
    ),
)
async def clear_groups(
    user_id: RequestingUserDependency,
    manager: SessionManagerDependency,
    log: LoggerDependency,
) -> CleanupResult:
    log = log.bind(requesting_user=user_id)
    result = await cleanup_service.clear_all_groups(
        user_id=user_id, manager=manager, log=log
    )
    await log.ainfo("api.admin.clear_groups", success=result.success)
    return result


@admin_routes.post(
    "/cleanup/all",
    summary="Complete cleanup",
    description=(
        "Delete all posts, then all groups, then run the integrity check. "
        "Requires an administrator."
    ),
)
async def clear_everything(
    user_id: RequestingUserDependency,
    manager: SessionManagerDependency,
    log: LoggerDependency,
) -> CompleteCleanupResult:
    log = log.bind(requesting_user=user_id)
    result = await cleanup_service.perform_complete_cleanup(
        user_id=user_id, manager=manager, log=log
    )
    await log.ainfo("api.admin.complete_cleanup", success=result.overall_success)
    return result
