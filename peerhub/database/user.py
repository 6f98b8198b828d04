"""
ORM for user profiles. Profiles belong to the authentication service; this
package only reads them.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from peerhub.core.clock import utcnow
from peerhub.core.uuid import UUID, uuid7


class User(SQLModel, table=True):
    user_id: UUID = Field(primary_key=True, default_factory=uuid7)

    email: str = Field(unique=True)
    full_name: str | None = None
    is_active: bool = True

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utcnow
    )
