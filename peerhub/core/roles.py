"""
Role hierarchy.
"""

import enum
from datetime import datetime
from typing import Iterable

from pydantic import BaseModel

from peerhub.core.clock import as_utc
from peerhub.core.uuid import UUID


class Role(str, enum.Enum):
    """
    Privilege levels, totally ordered by `rank`.
    """

    GUEST = "guest"
    MEMBER = "member"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def outranks(self, other: "Role") -> bool:
        return self.rank > other.rank

    @classmethod
    def from_store(cls, value: str) -> "Role":
        """
        Parse a stored role name. Legacy names from the earlier role table
        (`user`, `moderator`) map to `MEMBER`; anything unrecognised carries
        no privilege.
        """
        value = value.strip().lower()

        if value in _LEGACY_MEMBER_ROLES:
            return cls.MEMBER

        try:
            return cls(value)
        except ValueError:
            return cls.GUEST

    @classmethod
    def highest(cls, roles: Iterable["Role"]) -> "Role":
        """
        Fold a collection of roles down to the most privileged one. An empty
        collection resolves to `GUEST`.
        """
        return max(roles, key=lambda role: role.rank, default=cls.GUEST)


_RANKS = {
    Role.GUEST: 0,
    Role.MEMBER: 1,
    Role.ADMIN: 2,
    Role.SUPER_ADMIN: 3,
}

_LEGACY_MEMBER_ROLES = frozenset({"user", "moderator"})

ADMINISTRATIVE_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


class RoleAssignmentData(BaseModel):
    assignment_id: UUID
    user_id: UUID
    role: Role
    is_active: bool
    granted_at: datetime
    expires_at: datetime | None = None
    granted_by: UUID | None = None

    def is_effective(self, now: datetime) -> bool:
        """
        An assignment counts only while it is active and not yet expired.
        """
        if not self.is_active:
            return False

        expires_at = as_utc(self.expires_at)
        return expires_at is None or expires_at > as_utc(now)
