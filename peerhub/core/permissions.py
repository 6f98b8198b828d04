"""
Authorization decisions.
"""

from pydantic import BaseModel

# Reasons are shown verbatim to users; the guest and member variants are
# deliberately different sentences.
MANAGE_GROUPS_MEMBER_REASON = "Only administrators can manage groups."
MANAGE_GROUPS_GUEST_REASON = "Please sign in as an administrator to manage groups."
CREATE_POST_GUEST_REASON = (
    "Only registered members can create posts. Please sign up or sign in to continue."
)
VIEW_MEMBERS_GUEST_REASON = "Please sign in to view the member list."
DELETE_POST_REASON = "You can only delete your own posts."
UNKNOWN_PERMISSION_REASON = "Unknown permission type"


class PermissionResult(BaseModel):
    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> "PermissionResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "PermissionResult":
        return cls(allowed=False, reason=reason)
