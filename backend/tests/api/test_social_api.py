import pytest


@pytest.mark.asyncio
async def test_friend_request_flow(api_client, make_user):
    alice = await make_user("Alice Doe")
    bob = await make_user("Bob Roe")

    sent = await api_client.post(f"/users/{bob.id}/friend-request", json={"userId": alice.id})
    assert sent.status_code == 200
    body = sent.json()
    assert body["success"] is True
    assert body["data"]["status"] == "pending"
    assert body["data"]["requestSent"] is True
    assert "timestamp" in body

    accepted = await api_client.post(f"/users/{alice.id}/accept-friend", json={"userId": bob.id})
    assert accepted.status_code == 200
    assert accepted.json()["data"]["areFriends"] is True

    status = await api_client.get(f"/users/{bob.id}/friendship-status", params={"userId": alice.id})
    assert status.status_code == 200
    assert status.json()["data"]["areFriends"] is True

    friends = await api_client.get(f"/users/{alice.id}/friends", params={"page": 1, "limit": 10})
    payload = friends.json()
    assert [item["id"] for item in payload["data"]] == [bob.id]
    assert payload["pagination"] == {
        "page": 1,
        "limit": 10,
        "totalFriends": 1,
        "totalPages": 1,
        "hasNextPage": False,
        "hasPrevPage": False,
    }


@pytest.mark.asyncio
async def test_error_envelopes(api_client, make_user):
    alice = await make_user()

    self_request = await api_client.post(f"/users/{alice.id}/friend-request", json={"userId": alice.id})
    assert self_request.status_code == 400
    assert self_request.json()["success"] is False
    assert self_request.json()["error"] == "self_reference"

    missing = await api_client.post("/users/u-nobody/friend-request", json={"userId": alice.id})
    assert missing.status_code == 404
    assert missing.json()["message"] == "Target user not found"

    no_pending = await api_client.post("/users/u-nobody/accept-friend", json={"userId": alice.id})
    assert no_pending.status_code == 404

    missing_field = await api_client.post(f"/users/{alice.id}/friend-request", json={})
    assert missing_field.status_code == 422
    assert missing_field.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_reject_then_resend(api_client, make_user):
    u1 = await make_user()
    u2 = await make_user()

    await api_client.post(f"/users/{u2.id}/friend-request", json={"userId": u1.id})
    rejected = await api_client.post(f"/users/{u1.id}/reject-friend", json={"userId": u2.id})
    assert rejected.status_code == 200

    again = await api_client.post(f"/users/{u1.id}/reject-friend", json={"userId": u2.id})
    assert again.status_code == 400
    assert again.json()["error"] == "conflict"

    resent = await api_client.post(f"/users/{u2.id}/friend-request", json={"userId": u1.id})
    assert resent.status_code == 200


@pytest.mark.asyncio
async def test_unfriend_requires_friendship(api_client, make_user):
    u1 = await make_user()
    u2 = await make_user()
    response = await api_client.post(f"/users/{u2.id}/unfriend", json={"userId": u1.id})
    assert response.status_code == 400
    assert response.json()["message"] == "You are not friends with this user"


@pytest.mark.asyncio
async def test_follow_routes_disabled_under_friendship(api_client, make_user):
    u1 = await make_user()
    u2 = await make_user()
    response = await api_client.post(f"/users/{u2.id}/follow", json={"userId": u1.id})
    assert response.status_code == 400
    assert response.json()["message"] == "relationship_model_disabled"


@pytest.mark.asyncio
async def test_friend_requests_listing(api_client, make_user):
    u1 = await make_user()
    u2 = await make_user()
    await api_client.post(f"/users/{u2.id}/friend-request", json={"userId": u1.id})

    received = await api_client.get(f"/users/{u2.id}/friend-requests", params={"type": "received"})
    assert received.status_code == 200
    assert received.json()["count"] == 1
    assert received.json()["data"][0]["id"] == u1.id

    invalid = await api_client.get(f"/users/{u2.id}/friend-requests", params={"type": "bogus"})
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_bulk_status_and_push_token(api_client, make_user):
    u1 = await make_user()
    u2 = await make_user()
    await api_client.post(f"/users/{u2.id}/friend-request", json={"userId": u1.id})

    bulk = await api_client.post("/users/friendship-status/bulk", json={"userId": u1.id, "userIds": [u2.id]})
    assert bulk.status_code == 200
    assert bulk.json()["data"] == [{"userId": u2.id, "status": "request_sent", "error": None}]

    bad_token = await api_client.post(f"/users/{u1.id}/push-token", json={"expoPushToken": "nope"})
    assert bad_token.status_code == 400
    good_token = await api_client.post(
        f"/users/{u1.id}/push-token", json={"expoPushToken": "ExponentPushToken[abc]"}
    )
    assert good_token.status_code == 200


@pytest.mark.asyncio
async def test_login_and_profile(api_client):
    created = await api_client.post("/auth/login", json={"fullName": "Alice Doe", "email": "alice@example.com"})
    assert created.status_code == 201
    user_id = created.json()["data"]["id"]

    again = await api_client.post("/auth/login", json={"fullName": "Alice Doe", "email": "alice@example.com"})
    assert again.status_code == 200
    assert again.json()["data"]["id"] == user_id

    profile = await api_client.get(f"/users/{user_id}")
    assert profile.status_code == 200
    assert profile.json()["data"]["fullName"] == "Alice Doe"
    assert "email" not in profile.json()["data"]


@pytest.mark.asyncio
async def test_update_own_profile(api_client, make_user):
    alice = await make_user("Alice Doe")
    bob = await make_user("Bob Roe")

    updated = await api_client.put(
        f"/users/{alice.id}",
        json={"userId": alice.id, "fullName": "  Alice Smith ", "bio": "Writes headlines"},
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["fullName"] == "Alice Smith"
    assert updated.json()["data"]["bio"] == "Writes headlines"

    bio_only = await api_client.put(f"/users/{alice.id}", json={"userId": alice.id, "bio": ""})
    assert bio_only.json()["data"]["fullName"] == "Alice Smith"
    assert bio_only.json()["data"]["bio"] == ""

    someone_else = await api_client.put(f"/users/{alice.id}", json={"userId": bob.id, "bio": "hijacked"})
    assert someone_else.status_code == 403

    too_long = await api_client.put(f"/users/{alice.id}", json={"userId": alice.id, "bio": "a" * 161})
    assert too_long.status_code == 400
    assert too_long.json()["message"] == "Bio must be 160 characters or less"

    blank_name = await api_client.put(f"/users/{alice.id}", json={"userId": alice.id, "fullName": "   "})
    assert blank_name.status_code == 400


@pytest.mark.asyncio
async def test_list_users_and_check_existence(api_client, make_user):
    users = [await make_user(f"User {index}") for index in range(3)]

    first_page = await api_client.get("/users", params={"page": 1, "limit": 2})
    assert first_page.status_code == 200
    body = first_page.json()
    assert [item["id"] for item in body["data"]] == [user.id for user in users[:2]]
    assert body["pagination"]["totalUsers"] == 3
    assert body["pagination"]["hasNextPage"] is True
    assert all("email" not in item for item in body["data"])

    known = await api_client.post("/users/check", json={"email": f"  {users[0].email.upper()} "})
    assert known.json()["data"] == {"exists": True, "email": users[0].email}

    unknown = await api_client.post("/users/check", json={"email": "nobody@example.com"})
    assert unknown.json()["data"]["exists"] is False

    blank = await api_client.post("/users/check", json={"email": "  "})
    assert blank.status_code == 400
