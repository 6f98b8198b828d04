"""
Group management.
"""

from fastapi import APIRouter, HTTPException, status

from peerhub.core.group import GroupCreationData, GroupData, GroupUpdateData
from peerhub.core.permissions import PermissionResult
from peerhub.core.uuid import UUID
from peerhub.service import groups as groups_service
from peerhub.service import permissions as permissions_service

from .dependencies import DatabaseDependency, LoggerDependency, RequestingUserDependency

group_app = APIRouter(tags=["Group Management"])


@group_app.get(
    "/permission",
    summary="Can the caller manage groups",
    description=(
        "Returns the authorization decision used before any group is created "
        "or updated, including the reason to show when it is denied."
    ),
)
async def can_manage(
    user_id: RequestingUserDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> PermissionResult:
    return await permissions_service.can_manage_groups(
        user_id=user_id, conn=conn, log=log
    )


@group_app.get(
    "/list",
    summary="List all groups",
    description="Retrieve a list of all active groups.",
    responses={
        200: {"description": "List of groups."},
    },
)
async def list_groups(
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> list[GroupData]:
    groups = await groups_service.get_group_list(conn=conn, log=log)
    return [g.to_core() for g in groups]


@group_app.get(
    "/search",
    summary="Search groups",
    description=(
        "Case-insensitive search over active group names and descriptions, "
        "newest first."
    ),
    responses={
        200: {"description": "Matching groups."},
    },
)
async def search_groups(
    q: str,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> list[GroupData]:
    groups = await groups_service.search_groups(query=q, conn=conn, log=log)
    return [g.to_core() for g in groups]

@group_app.get(
    "/{group_id}",
    summary="Get group by ID",
    responses={
        200: {"description": "Group details."},
        404: {"description": "Group not found."},
    },
)
async def get_group_by_id(
    group_id: UUID,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    try:
        group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)
    except groups_service.GroupNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")

    return group.to_core()


@group_app.put(
    "",
    summary="Create a new group",
    description="Create a new group. Requires an administrator.",
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Group created successfully."},
        400: {"description": "Invalid input data."},
        403: {"description": "Not allowed to manage groups."},
        409: {"description": "A group with this name already exists."},
    },
)
async def create_group(
    content: GroupCreationData,
    user_id: RequestingUserDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    log = log.bind(requesting_user=user_id)

    try:
        group = await groups_service.create(
            user_id=user_id, data=content, conn=conn, log=log
        )
    except groups_service.PermissionDenied as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except groups_service.GroupValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except groups_service.GroupExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    await log.ainfo("api.groups.created", group_id=group.group_id)

    return group.to_core()


@group_app.post(
    "/{group_id}",
    summary="Update a group",
    description="Change a group's details. Requires an administrator.",
    responses={
        200: {"description": "Group updated."},
        400: {"description": "Invalid input data."},
        403: {"description": "Not allowed to manage groups."},
        404: {"description": "Group not found."},
    },
)
async def update_group(
    group_id: UUID,
    content: GroupUpdateData,
    user_id: RequestingUserDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    log = log.bind(requesting_user=user_id)

    try:
        group = await groups_service.update(
            user_id=user_id, group_id=group_id, data=content, conn=conn, log=log
        )
    except groups_service.PermissionDenied as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except groups_service.GroupNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
    except groups_service.GroupValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except groups_service.GroupExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    await log.ainfo("api.groups.updated", group_id=group_id)

    return group.to_core()
