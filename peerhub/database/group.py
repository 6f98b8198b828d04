"""
Group ORM
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from peerhub.core.clock import utcnow
from peerhub.core.group import GroupData
from peerhub.core.uuid import UUID, uuid7


class GroupMembership(SQLModel, table=True):
    """
    A record of a user's group membership.
    """

    __tablename__ = "group_membership"
    __table_args__ = (UniqueConstraint("group_id", "user_id"),)

    membership_id: UUID = Field(primary_key=True, default_factory=uuid7)

    # No ON DELETE CASCADE: memberships are removed explicitly by the cleanup
    # service before their groups.
    group_id: UUID = Field(foreign_key="group.group_id", index=True)
    user_id: UUID = Field(foreign_key="user.user_id", index=True)

    role: str = Field(default="member")
    is_active: bool = True
    joined_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utcnow
    )


class Group(SQLModel, table=True):
    group_id: UUID = Field(primary_key=True, default_factory=uuid7)

    name: str = Field(sa_column=Column(String(255), unique=True, nullable=False))
    description: str | None = Field(sa_column=Column(Text), default=None)
    external_link: str | None = Field(sa_column=Column(Text), default=None)
    member_count: int = 0

    created_by: UUID = Field(foreign_key="user.user_id")
    is_active: bool = True

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utcnow
    )
    updated_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utcnow
    )

    def to_core(self) -> GroupData:
        """
        Convert this Group ORM object to a GroupData core object.
        """
        return GroupData(
            group_id=self.group_id,
            name=self.name,
            description=self.description,
            external_link=self.external_link,
            member_count=self.member_count,
            created_by=self.created_by,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
