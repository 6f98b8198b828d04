"""
Meta functionality for the database.
"""

from .group import Group, GroupMembership
from .post import Post, PostLike
from .roles import RoleAssignment
from .user import User

ALL_TABLES = (
    User,
    RoleAssignment,
    Group,
    GroupMembership,
    Post,
    PostLike,
)
