"""
Command line tooling for administrators: seeding the initial groups, checking
roles, and running the cleanup and integrity operations.
"""

import asyncio
import sys

import structlog
import uvicorn

from peerhub.config.settings import Settings
from peerhub.core.uuid import parse_user_id
from peerhub.service import cleanup as cleanup_service
from peerhub.service import initial_groups as initial_groups_service
from peerhub.service import permissions as permissions_service
from peerhub.service.store import StoreFailure

USAGE = """PeerHub administration

Commands:
  check                      Check which initial groups exist
  list                       List the initial groups
  validate                   Validate that all initial groups are present
  create [user-id]           Create all initial groups
  create-missing [user-id]   Create only the missing initial groups
  role <user-id>             Show a user's effective role and group permission
  status                     Show record counts
  integrity                  Check for orphaned records
  clear-posts <user-id>      Delete all posts and likes
  clear-groups <user-id>     Delete all groups and memberships
  cleanup <user-id>          Delete all posts and groups, then validate
  reset <user-id>            Complete cleanup, then create the initial groups
  setup                      Create the database tables
  serve                      Run the HTTP API
  help                       Show this message
"""


def print_lines(title: str, lines: list[str]):
    print(title)
    for index, line in enumerate(lines, start=1):
        print(f"   {index}. {line}")


async def resolve_owner(argument: str | None, settings: Settings, manager, log):
    """
    The user that seeded groups are created by: the command line argument,
    then `PEERHUB_INITIAL_ADMIN`, then the first administrator in the store.
    """
    if argument is not None:
        return parse_user_id(argument)

    if settings.initial_admin is not None:
        return settings.initial_admin

    return await initial_groups_service.find_admin_user(manager=manager, log=log)


async def run_command(command: str, arguments: list[str], settings: Settings) -> int:
    log = structlog.get_logger().bind(command=command)
    manager = settings.async_manager()
    argument = arguments[0] if arguments else None

    try:
        match command:
            case "list":
                print_lines(
                    "Initial groups:", initial_groups_service.initial_group_names()
                )
                return 0

            case "check" | "validate":
                check = await initial_groups_service.check_existing_groups(
                    manager=manager, log=log
                )
                print(f"Total required groups: {len(check.existing_groups) + len(check.missing_groups)}")
                print(f"Existing: {len(check.existing_groups)}")
                print(f"Missing: {len(check.missing_groups)}")
                if check.existing_groups:
                    print_lines("Existing groups:", check.existing_groups)
                if check.missing_groups:
                    print_lines("Missing groups:", check.missing_groups)

                if command == "validate":
                    validation = await initial_groups_service.validate_initial_groups(
                        manager=manager, log=log
                    )
                    print(validation.report)
                    return 0 if validation.is_valid else 1

                return 0

            case "create" | "create-missing":
                owner = await resolve_owner(argument, settings, manager, log)
                if owner is None:
                    print("No admin user found. Please provide an admin user ID.")
                    return 1

                if command == "create":
                    result = await initial_groups_service.create_initial_groups(
                        user_id=owner, manager=manager, log=log
                    )
                else:
                    result = await initial_groups_service.create_missing_groups(
                        user_id=owner, manager=manager, log=log
                    )

                for group in result.created:
                    print(f"Created: {group.name} ({group.group_id})")
                for error in result.errors:
                    print(error)
                print(result.summary)
                return 0 if result.success else 1

            case "role":
                user_id = parse_user_id(argument)
                async with manager.session() as conn:
                    async with conn.begin():
                        role = await permissions_service.get_user_role(
                            user_id=user_id, conn=conn, log=log
                        )
                        permission = await permissions_service.can_manage_groups(
                            user_id=user_id, conn=conn, log=log
                        )
                print(f"Role: {role.value}")
                print(f"Can manage groups: {'yes' if permission.allowed else 'no'}")
                if permission.reason:
                    print(f"Reason: {permission.reason}")
                return 0

            case "status":
                status = await cleanup_service.get_cleanup_status(
                    manager=manager, log=log
                )
                print(f"Posts: {status.posts_count}")
                print(f"Groups: {status.groups_count}")
                print(f"Post likes: {status.post_likes_count}")
                print(f"Group memberships: {status.group_memberships_count}")
                print(f"As of: {status.last_updated.isoformat()}")
                return 0

            case "integrity":
                report = await cleanup_service.validate_data_integrity(
                    manager=manager, log=log
                )
                for kind, count in report.orphaned_records.items():
                    print(f"Orphaned {kind}: {count}")
                if report.is_valid:
                    print("Data integrity check passed.")
                    return 0
                print_lines("Integrity issues:", report.issues)
                return 1

            case "clear-posts" | "clear-groups":
                operation = (
                    cleanup_service.clear_all_posts
                    if command == "clear-posts"
                    else cleanup_service.clear_all_groups
                )
                result = await operation(
                    user_id=parse_user_id(argument), manager=manager, log=log
                )
                print(result.message)
                return 0 if result.success else 1

            case "cleanup":
                result = await cleanup_service.perform_complete_cleanup(
                    user_id=parse_user_id(argument), manager=manager, log=log
                )
                print(f"Posts: {result.posts_cleanup.message}")
                print(f"Groups: {result.groups_cleanup.message}")
                if result.integrity_validation.issues:
                    print_lines("Integrity issues:", result.integrity_validation.issues)
                print("Cleanup succeeded." if result.overall_success else "Cleanup failed.")
                return 0 if result.overall_success else 1

            case "reset":
                result = await cleanup_service.perform_community_reset(
                    user_id=parse_user_id(argument), manager=manager, log=log
                )
                print(f"Posts: {result.cleanup.posts_cleanup.message}")
                print(f"Groups: {result.cleanup.groups_cleanup.message}")
                print(f"Created groups: {result.created_groups}")
                for error in result.errors:
                    print(error)
                print("Reset succeeded." if result.success else "Reset failed.")
                return 0 if result.success else 1

            case "setup":
                await manager.create_all()
                print("Tables created.")
                return 0

            case _:
                print(USAGE)
                return 0 if command == "help" else 1
    except StoreFailure as e:
        print(str(e))
        return 1
    finally:
        await manager.dispose()


def main():
    try:
        command = sys.argv[1]
    except IndexError:
        print(USAGE)
        exit(1)

    settings = Settings()

    if command == "serve":
        uvicorn.run("peerhub.api.app:app", host=settings.api_host, port=settings.api_port)
        return

    exit(asyncio.run(run_command(command, sys.argv[2:], settings=settings)))
