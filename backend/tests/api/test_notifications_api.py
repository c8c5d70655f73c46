import pytest


@pytest.mark.asyncio
async def test_inbox_after_dispatch(api_client, services, make_user):
    alice = await make_user("Alice Doe")
    bob = await make_user("Bob Roe")
    await api_client.post(f"/users/{bob.id}/friend-request", json={"userId": alice.id})
    await services.dispatch_worker(block_ms=None).process_once()

    inbox = await api_client.get(f"/notifications/{bob.id}")
    assert inbox.status_code == 200
    body = inbox.json()
    assert body["pagination"]["totalNotifications"] == 1
    assert body["unreadCount"] == 1
    notification = body["data"][0]
    assert notification["type"] == "friend_request"
    assert notification["isRead"] is False

    marked = await api_client.post(
        "/notifications/read",
        json={"userId": bob.id, "notificationIds": [notification["id"]]},
    )
    assert marked.status_code == 200
    assert marked.json()["updatedCount"] == 1

    stats = await api_client.get(f"/notifications/{bob.id}/stats")
    assert stats.json()["data"] == {"total": 1, "unread": 0, "read": 1, "byType": {"friend_request": 1}}


@pytest.mark.asyncio
async def test_inbox_errors(api_client, make_user):
    missing = await api_client.get("/notifications/u-nobody")
    assert missing.status_code == 404

    user = await make_user()
    empty = await api_client.post("/notifications/read", json={"userId": user.id, "notificationIds": []})
    assert empty.status_code == 422


@pytest.mark.asyncio
async def test_health(api_client):
    response = await api_client.get("/health")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "ok"
    assert response.json()["data"]["relationshipModel"] == "friendship"


@pytest.mark.asyncio
async def test_metrics_exposition(api_client):
    await api_client.get("/health")
    response = await api_client.get("/metrics")
    assert response.status_code == 200
    assert "newsflash_http_requests_total" in response.text
