"""
ORM for role assignments.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlmodel import Field, SQLModel

from peerhub.core.clock import utcnow
from peerhub.core.roles import Role, RoleAssignmentData
from peerhub.core.uuid import UUID, uuid7


class RoleAssignment(SQLModel, table=True):
    """
    A single grant of a role to a user. A user may hold several; only active,
    unexpired ones are considered when resolving their role.
    """

    __tablename__ = "role_assignment"

    assignment_id: UUID = Field(primary_key=True, default_factory=uuid7)

    user_id: UUID = Field(foreign_key="user.user_id", index=True)
    role: Role = Field(sa_column=Column(String(32), nullable=False))
    is_active: bool = True

    granted_by: UUID | None = Field(default=None, foreign_key="user.user_id")
    granted_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utcnow
    )
    expires_at: datetime | None = Field(
        sa_column=Column(DateTime(timezone=True)), default=None
    )

    def to_core(self) -> RoleAssignmentData:
        return RoleAssignmentData(
            assignment_id=self.assignment_id,
            user_id=self.user_id,
            role=Role.from_store(self.role),
            is_active=self.is_active,
            granted_at=self.granted_at,
            expires_at=self.expires_at,
            granted_by=self.granted_by,
        )
