"""
The catalogue of community groups every fresh installation starts with, and
the operations used by setup tooling to create, check and validate them.
"""

from sqlalchemy import select
from structlog.typing import FilteringBoundLogger

from peerhub.config.managers import AsyncSessionManager
from peerhub.core.group import (
    GroupCreationData,
    InitialGroupsCheck,
    InitialGroupsCreation,
    InitialGroupsValidation,
)
from peerhub.core.roles import Role
from peerhub.core.uuid import UUID
from peerhub.database.group import Group

from . import groups as groups_service
from . import roles as role_store
from .store import StoreFailure, store_errors

INITIAL_GROUPS: tuple[GroupCreationData, ...] = (
    GroupCreationData(
        name="ピアラーニングハブ生成AI部",
        description=(
            "生成AI技術について学び、実践的なプロジェクトに取り組むコミュニティです。"
            "ChatGPT、Claude、Midjourney等の最新AI技術を活用した学習とディスカッションを行います。"
        ),
        external_link="https://discord.gg/ai-learning-hub",
    ),
    GroupCreationData(
        name="さぬきピアラーニングハブゴルフ部",
        description=(
            "香川県内でゴルフを楽しみながら、ネットワーキングと学習を組み合わせた"
            "ユニークなコミュニティです。初心者から上級者まで歓迎します。"
        ),
        external_link="https://discord.gg/sanuki-golf-club",
    ),
    GroupCreationData(
        name="さぬきピアラーニングハブ英語部",
        description=(
            "英語学習を通じて国際的な視野を広げるコミュニティです。"
            "英会話練習、TOEIC対策、ビジネス英語など様々な学習活動を行います。"
        ),
        external_link="https://discord.gg/sanuki-english-club",
    ),
    GroupCreationData(
        name="WAOJEさぬきピアラーニングハブ交流会参加者",
        description=(
            "WAOJE（和僑会）との連携による国際的なビジネス交流会の参加者コミュニティです。"
            "グローバルなビジネスネットワーキングと学習機会を提供します。"
        ),
        external_link="https://discord.gg/waoje-sanuki-exchange",
    ),
    GroupCreationData(
        name="香川イノベーションベース",
        description=(
            "香川県を拠点とした起業家、イノベーター、クリエイターのためのコミュニティです。"
            "新しいビジネスアイデアの創出と実現をサポートします。"
        ),
        external_link="https://discord.gg/kagawa-innovation-base",
    ),
    GroupCreationData(
        name="さぬきピアラーニングハブ居住者",
        description=(
            "さぬきピアラーニングハブの居住者専用コミュニティです。"
            "共同生活を通じた学習体験と日常的な情報共有を行います。"
        ),
        external_link="https://discord.gg/sanuki-residents",
    ),
    GroupCreationData(
        name="英語キャンプ卒業者",
        description=(
            "英語キャンプを修了したメンバーのアルムナイコミュニティです。"
            "継続的な英語学習サポートと卒業生同士のネットワーキングを提供します。"
        ),
        external_link="https://discord.gg/english-camp-alumni",
    ),
)


def initial_group_names() -> list[str]:
    return [group.name for group in INITIAL_GROUPS]


async def check_existing_groups(
    manager: AsyncSessionManager, log: FilteringBoundLogger
) -> InitialGroupsCheck:
    """
    Split the catalogue into groups already present (by name, active or not)
    and groups still missing.

    Raises
    ------
    StoreFailure
        If the groups table could not be read.
    """
    async with store_errors("read groups", log):
        async with manager.session() as conn:
            async with conn.begin():
                result = await conn.execute(select(Group.name))
                present = set(result.scalars().all())

    names = initial_group_names()
    check = InitialGroupsCheck(
        existing_groups=[name for name in names if name in present],
        missing_groups=[name for name in names if name not in present],
    )

    await log.adebug(
        "initial_groups.checked",
        existing=len(check.existing_groups),
        missing=len(check.missing_groups),
    )

    return check


async def _create_each(
    groups: list[GroupCreationData],
    user_id: UUID | None,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> tuple[list, list[str]]:
    # One transaction per group, so that one failure does not undo the others
    created = []
    errors = []

    for index, data in enumerate(groups, start=1):
        group_log = log.bind(group_name=data.name, position=index, total=len(groups))
        try:
            async with store_errors("create group", group_log):
                async with manager.session() as conn:
                    async with conn.begin():
                        group = await groups_service.create(
                            user_id=user_id, data=data, conn=conn, log=group_log
                        )
                created.append(group.to_core())
        except (
            groups_service.PermissionDenied,
            groups_service.GroupExistsError,
            groups_service.GroupValidationError,
            StoreFailure,
        ) as e:
            errors.append(f'Failed to create "{data.name}": {e}')
            await group_log.awarning("initial_groups.create_failed", error=str(e))

    return created, errors


def _summary(created: int, errors: int, total: int) -> str:
    if created == total and errors == 0:
        return f"Successfully created all {total} initial groups!"
    if created > 0 and errors == 0:
        return f"Successfully created {created}/{total} groups."
    if created > 0:
        return f"Partially successful: Created {created}/{total} groups, {errors} failed."
    return f"Failed to create any groups. {errors} errors occurred."


def _smart_summary(created: int, existing: int, errors: int, total: int) -> str:
    if existing == total:
        return f"All {total} initial groups already exist."
    if created + existing == total and errors == 0:
        return f"Setup complete! Created {created} new groups, {existing} already existed."
    if errors == 0:
        return f"Created {created} new groups, {existing} already existed."
    return f"Created {created} groups, {existing} already existed, {errors} failed."


async def create_initial_groups(
    user_id: UUID | None,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> InitialGroupsCreation:
    """
    Create every group in the catalogue on behalf of `user_id`. Groups that
    fail (including ones that already exist) are reported in `errors`; the
    others are still created.
    """
    log = log.bind(user_id=user_id)

    created, errors = await _create_each(list(INITIAL_GROUPS), user_id, manager, log)
    summary = _summary(len(created), len(errors), len(INITIAL_GROUPS))

    await log.ainfo("initial_groups.created", created=len(created), failed=len(errors))

    return InitialGroupsCreation(
        success=len(created) > 0,
        created=created,
        skipped=[],
        errors=errors,
        summary=summary,
    )


async def create_missing_groups(
    user_id: UUID | None,
    manager: AsyncSessionManager,
    log: FilteringBoundLogger,
) -> InitialGroupsCreation:
    """
    Create only the catalogue groups not already present.

    Raises
    ------
    StoreFailure
        If the existing groups could not be read.
    """
    log = log.bind(user_id=user_id)
    total = len(INITIAL_GROUPS)

    check = await check_existing_groups(manager=manager, log=log)

    if check.all_exist:
        await log.ainfo("initial_groups.nothing_missing")
        return InitialGroupsCreation(
            success=True,
            created=[],
            skipped=check.existing_groups,
            errors=[],
            summary=_smart_summary(0, total, 0, total),
        )

    missing = [group for group in INITIAL_GROUPS if group.name in check.missing_groups]
    created, errors = await _create_each(missing, user_id, manager, log)

    await log.ainfo(
        "initial_groups.missing_created",
        created=len(created),
        skipped=len(check.existing_groups),
        failed=len(errors),
    )

    return InitialGroupsCreation(
        success=not errors,
        created=created,
        skipped=check.existing_groups,
        errors=errors,
        summary=_smart_summary(
            len(created), len(check.existing_groups), len(errors), total
        ),
    )


async def validate_initial_groups(
    manager: AsyncSessionManager, log: FilteringBoundLogger
) -> InitialGroupsValidation:
    """
    Raises
    ------
    StoreFailure
        If the existing groups could not be read.
    """
    check = await check_existing_groups(manager=manager, log=log)

    if check.all_exist:
        report = f"All {len(INITIAL_GROUPS)} initial groups are present."
    else:
        report = (
            f"Missing {len(check.missing_groups)} groups: "
            + ", ".join(check.missing_groups)
        )

    return InitialGroupsValidation(
        is_valid=check.all_exist,
        existing_count=len(check.existing_groups),
        missing_groups=check.missing_groups,
        report=report,
    )


async def find_admin_user(
    manager: AsyncSessionManager, log: FilteringBoundLogger
) -> UUID | None:
    """
    Pick a user to own seeded groups: the earliest granted super_admin, else
    the earliest granted admin, else `None`.
    """
    async with store_errors("find an administrator", log):
        async with manager.session() as conn:
            async with conn.begin():
                for role in (Role.SUPER_ADMIN, Role.ADMIN):
                    users = await role_store.find_users_with_role(
                        role=role, conn=conn, log=log
                    )
                    if users:
                        await log.ainfo(
                            "initial_groups.admin_found", user_id=users[0], role=role.value
                        )
                        return users[0]

    await log.awarning("initial_groups.no_admin")

    return None
