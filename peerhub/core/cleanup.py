"""
Result objects returned by the cleanup service.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from peerhub.core.clock import utcnow

# Keys of `IntegrityValidationResult.orphaned_records`
ORPHANED_POST_LIKES = "post_likes"
ORPHANED_GROUP_MEMBERSHIPS = "group_memberships"
ORPHANED_MEMBERSHIP_USERS = "group_membership_users"

ORPHAN_KINDS = (
    ORPHANED_POST_LIKES,
    ORPHANED_GROUP_MEMBERSHIPS,
    ORPHANED_MEMBERSHIP_USERS,
)


class CleanupResult(BaseModel):
    success: bool
    deleted_count: int
    message: str
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def denied(cls, reason: str | None) -> "CleanupResult":
        return cls(
            success=False, deleted_count=0, message=f"Permission denied: {reason}"
        )


class IntegrityValidationResult(BaseModel):
    is_valid: bool
    issues: list[str]
    orphaned_records: dict[str, int]
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_orphan_counts(
        cls, orphaned_records: dict[str, int], timestamp: datetime
    ) -> "IntegrityValidationResult":
        """
        Build the report for a completed scan. Every non-zero orphan count
        becomes one issue, in the fixed order of `ORPHAN_KINDS`.
        """
        issues = [
            ORPHAN_DESCRIPTIONS[kind].format(count=orphaned_records[kind])
            for kind in ORPHAN_KINDS
            if orphaned_records.get(kind, 0) > 0
        ]

        return cls(
            is_valid=not issues,
            issues=issues,
            orphaned_records={kind: orphaned_records.get(kind, 0) for kind in ORPHAN_KINDS},
            timestamp=timestamp,
        )


ORPHAN_DESCRIPTIONS = {
    ORPHANED_POST_LIKES: "Found {count} orphaned post likes",
    ORPHANED_GROUP_MEMBERSHIPS: "Found {count} orphaned group memberships",
    ORPHANED_MEMBERSHIP_USERS: "Found {count} group memberships referencing missing users",
}


class CompleteCleanupResult(BaseModel):
    overall_success: bool
    posts_cleanup: CleanupResult
    groups_cleanup: CleanupResult
    integrity_validation: IntegrityValidationResult


class CommunityResetResult(BaseModel):
    cleanup: CompleteCleanupResult
    created_groups: int
    errors: list[str]
    integrity_validation: IntegrityValidationResult | None
    success: bool


class CleanupStatus(BaseModel):
    posts_count: int
    groups_count: int
    post_likes_count: int
    group_memberships_count: int
    last_updated: datetime
