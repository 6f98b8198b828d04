"""
Core group data models.
"""

from datetime import datetime

from pydantic import BaseModel

from peerhub.core.uuid import UUID


class GroupData(BaseModel):
    group_id: UUID
    name: str
    description: str | None
    external_link: str | None
    member_count: int
    created_by: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime


class GroupCreationData(BaseModel):
    name: str
    description: str | None = None
    external_link: str | None = None


class GroupUpdateData(BaseModel):
    name: str | None = None
    description: str | None = None
    external_link: str | None = None
    is_active: bool | None = None


class InitialGroupsCheck(BaseModel):
    existing_groups: list[str]
    missing_groups: list[str]

    @property
    def all_exist(self) -> bool:
        return not self.missing_groups


class InitialGroupsCreation(BaseModel):
    success: bool
    created: list[GroupData]
    skipped: list[str]
    errors: list[str]
    summary: str


class InitialGroupsValidation(BaseModel):
    is_valid: bool
    existing_count: int
    missing_groups: list[str]
    report: str
