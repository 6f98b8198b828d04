"""
Identifier helpers. Records are keyed by time-ordered uuid7 values so that
primary keys sort in insertion order; the standard library only gained uuid7
in 3.14.
"""

from uuid import UUID as UUID

from uuid_extensions import uuid7 as uuid7

__ALL__ = ["UUID", "uuid7", "parse_user_id"]


def parse_user_id(value: str | UUID | None) -> UUID | None:
    """
    Parse a user identifier coming from an untrusted source (a header, a
    command line argument). Anything that is not a valid UUID maps to `None`,
    which the permission layer treats as an unauthenticated caller.
    """
    if value is None or isinstance(value, UUID):
        return value

    try:
        return UUID(value.strip())
    except ValueError:
        return None
