"""
Tests the group service layer.
"""

import pytest

from peerhub.core.group import GroupCreationData, GroupUpdateData
from peerhub.core.permissions import MANAGE_GROUPS_MEMBER_REASON
from peerhub.service import groups as groups_service


@pytest.mark.asyncio(loop_scope="session")
async def test_create_group(store, logger, admin, member):
    async with store.session() as conn:
        async with conn.begin():
            group = await groups_service.create(
                user_id=admin,
                data=GroupCreationData(
                    name="  Reading circle ",
                    description="Books, monthly.",
                    external_link="https://discord.gg/reading-circle",
                ),
                conn=conn,
                log=logger,
            )

            GROUP_ID = group.group_id

    # Try to create it again
    with pytest.raises(groups_service.GroupExistsError):
        async with store.session() as conn:
            async with conn.begin():
                await groups_service.create(
                    user_id=admin,
                    data=GroupCreationData(name="Reading circle"),
                    conn=conn,
                    log=logger,
                )

    # Read by ID and by name
    async with store.session() as conn:
        async with conn.begin():
            group = await groups_service.read_by_id(
                group_id=GROUP_ID, conn=conn, log=logger
            )

            assert group.name == "Reading circle"
            assert group.created_by == admin
            assert group.member_count == 0
            assert group.is_active

            group = await groups_service.read_by_name(
                name="Reading circle", conn=conn, log=logger
            )
            assert group.group_id == GROUP_ID

    # Members cannot add themselves or anyone else
    with pytest.raises(groups_service.PermissionDenied):
        async with store.session() as conn:
            async with conn.begin():
                await groups_service.add_member(
                    requested_by=member,
                    group_id=GROUP_ID,
                    user_id=member,
                    conn=conn,
                    log=logger,
                )

    # Add a member, twice
    async with store.session() as conn:
        async with conn.begin():
            await groups_service.add_member(
                requested_by=admin,
                group_id=GROUP_ID,
                user_id=member,
                conn=conn,
                log=logger,
            )
            await groups_service.add_member(
                requested_by=admin,
                group_id=GROUP_ID,
                user_id=member,
                conn=conn,
                log=logger,
            )

    async with store.session() as conn:
        async with conn.begin():
            group = await groups_service.read_by_id(
                group_id=GROUP_ID, conn=conn, log=logger
            )
            assert group.member_count == 1

    # Update and deactivate
    async with store.session() as conn:
        async with conn.begin():
            group = await groups_service.update(
                user_id=admin,
                group_id=GROUP_ID,
                data=GroupUpdateData(description="", is_active=False),
                conn=conn,
                log=logger,
            )
            assert group.description is None
            assert not group.is_active

            listed = await groups_service.get_group_list(conn=conn, log=logger)
            assert listed == []

            listed = await groups_service.get_group_list(
                conn=conn, log=logger, include_inactive=True
            )
            assert [g.group_id for g in listed] == [GROUP_ID]


@pytest.mark.asyncio(loop_scope="session")
async def test_members_cannot_manage_groups(store, logger, admin, member):
    with pytest.raises(groups_service.PermissionDenied) as e:
        async with store.session() as conn:
            async with conn.begin():
                await groups_service.create(
                    user_id=member,
                    data=GroupCreationData(name="Not allowed"),
                    conn=conn,
                    log=logger,
                )

    assert str(e.value) == MANAGE_GROUPS_MEMBER_REASON

    async with store.session() as conn:
        async with conn.begin():
            group = await groups_service.create(
                user_id=admin,
                data=GroupCreationData(name="Allowed"),
                conn=conn,
                log=logger,
            )
            GROUP_ID = group.group_id

    with pytest.raises(groups_service.PermissionDenied):
        async with store.session() as conn:
            async with conn.begin():
                await groups_service.update(
                    user_id=None,
                    group_id=GROUP_ID,
                    data=GroupUpdateData(name="Renamed"),
                    conn=conn,
                    log=logger,
                )

    async with store.session() as conn:
        async with conn.begin():
            assert await groups_service.get_group_list(conn=conn, log=logger) != []
            group = await groups_service.read_by_id(
                group_id=GROUP_ID, conn=conn, log=logger
            )
            assert group.name == "Allowed"


@pytest.mark.asyncio(loop_scope="session")
async def test_search_groups(store, logger, admin):
    for name, description in (
        ("English club", "Conversation practice every week"),
        ("Golf club", "Weekend rounds in Kagawa"),
        ("Generative AI", "Prompting and english-language papers"),
        ("Hidden english", None),
    ):
        async with store.session() as conn:
            async with conn.begin():
                await groups_service.create(
                    user_id=admin,
                    data=GroupCreationData(name=name, description=description),
                    conn=conn,
                    log=logger,
                )

    async with store.session() as conn:
        async with conn.begin():
            hidden = await groups_service.read_by_name(
                name="Hidden english", conn=conn, log=logger
            )
            hidden.is_active = False

    async with store.session() as conn:
        async with conn.begin():
            found = await groups_service.search_groups(
                query=" ENGLISH ", conn=conn, log=logger
            )
            # Newest first, inactive groups excluded, descriptions matched
            assert [g.name for g in found] == ["Generative AI", "English club"]

            found = await groups_service.search_groups(
                query="kagawa", conn=conn, log=logger
            )
            assert [g.name for g in found] == ["Golf club"]

            assert await groups_service.search_groups(
                query="chess", conn=conn, log=logger
            ) == []

@pytest.mark.parametrize(
    "data, message",
    [
        (GroupCreationData(name="   "), "Group name is required"),
        (GroupCreationData(name="x" * 256), "Group name cannot exceed 255 characters"),
        (
            GroupCreationData(name="Bad link", external_link="ftp://example.com"),
            "External link must be a valid HTTP or HTTPS URL",
        ),
        (
            GroupCreationData(name="Long", description="x" * 2001),
            "Group description cannot exceed 2000 characters",
        ),
    ],
)
def test_validation(data, message):
    with pytest.raises(groups_service.GroupValidationError) as e:
        groups_service.validate_group_data(data)

    assert str(e.value) == message


def test_valid_group_data():
    groups_service.validate_group_data(
        GroupCreationData(name="x" * 255, external_link="  ", description=None)
    )
    groups_service.validate_group_data(
        GroupCreationData(name="Fine", external_link="http://example.com/path?q=1")
    )
