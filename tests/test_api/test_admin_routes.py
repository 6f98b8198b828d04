"""
Tests the administration endpoints.
"""

import pytest

from peerhub.api.app import app
from peerhub.api.dependencies import get_session_manager
from peerhub.config.managers import AsyncSessionManager


@pytest.mark.asyncio(loop_scope="session")
async def test_status_and_integrity(client, admin, seed):
    await seed(admin, posts=2, groups=1)

    response = await client.get("/admin/cleanup/status")
    assert response.status_code == 200
    body = response.json()
    assert body["posts_count"] == 2
    assert body["groups_count"] == 1
    assert body["post_likes_count"] == 2
    assert body["group_memberships_count"] == 1
    assert "last_updated" in body

    response = await client.get("/admin/cleanup/integrity")
    assert response.status_code == 200
    assert response.json()["is_valid"]


@pytest.mark.asyncio(loop_scope="session")
async def test_cleanup_requires_administrator(client, admin, member, seed):
    await seed(admin, posts=3, groups=2)

    response = await client.post("/admin/cleanup/posts", headers={"X-User-Id": str(member)})
    assert response.status_code == 200
    body = response.json()
    assert not body["success"]
    assert body["deleted_count"] == 0
    assert body["message"] == "Permission denied: Only administrators can manage groups."

    response = await client.post("/admin/cleanup/groups")
    assert response.json()["message"] == (
        "Permission denied: Please sign in as an administrator to manage groups."
    )

    response = await client.post(
        "/admin/cleanup/groups", headers={"X-User-Id": "not-a-user-id"}
    )
    assert not response.json()["success"]

    response = await client.post("/admin/cleanup/all", headers={"X-User-Id": str(admin)})
    body = response.json()
    assert body["overall_success"]
    assert body["posts_cleanup"]["deleted_count"] == 3
    assert body["groups_cleanup"]["deleted_count"] == 2
    assert body["integrity_validation"]["issues"] == []


@pytest.mark.asyncio(loop_scope="session")
async def test_store_failure_is_unavailable(client, tmp_path):
    broken = AsyncSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    app.dependency_overrides[get_session_manager] = lambda: broken

    try:
        response = await client.get("/admin/cleanup/status")
        assert response.status_code == 503
        assert response.json()["detail"] == "Database error: unable to read cleanup status."

        response = await client.get("/admin/cleanup/integrity")
        assert response.status_code == 503
    finally:
        await broken.dispose()
