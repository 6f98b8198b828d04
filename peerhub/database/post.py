"""
Post and like ORM.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from peerhub.core.clock import utcnow
from peerhub.core.uuid import UUID, uuid7


class Post(SQLModel, table=True):
    post_id: UUID = Field(primary_key=True, default_factory=uuid7)

    user_id: UUID = Field(foreign_key="user.user_id", index=True)
    content: str = Field(sa_column=Column(Text, nullable=False))

    likes_count: int = 0
    is_active: bool = True

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utcnow
    )
    updated_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utcnow
    )


class PostLike(SQLModel, table=True):
    __tablename__ = "post_like"
    __table_args__ = (UniqueConstraint("post_id", "user_id"),)

    like_id: UUID = Field(primary_key=True, default_factory=uuid7)

    post_id: UUID = Field(foreign_key="post.post_id", index=True)
    user_id: UUID = Field(foreign_key="user.user_id")

    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True)), default_factory=utcnow
    )
