import pytest


@pytest.mark.asyncio
async def test_group_lifecycle(api_client, make_user):
    owner = await make_user("Olga Owner")
    member = await make_user("Max Member")

    created = await api_client.post(f"/groups/user/{owner.id}", json={"name": "Book club", "description": "Monthly"})
    assert created.status_code == 201
    group_id = created.json()["data"]["id"]
    assert created.json()["data"]["memberCount"] == 1

    invited = await api_client.post(f"/groups/{group_id}/invite", json={"userId": owner.id, "userIds": [member.id]})
    assert invited.status_code == 200
    assert invited.json()["data"]["invitedUsers"] == [member.id]

    accepted = await api_client.post(f"/groups/{group_id}/accept", json={"userId": member.id})
    assert accepted.json()["data"]["memberCount"] == 2

    owner_leave = await api_client.post(f"/groups/{group_id}/leave", json={"userId": owner.id})
    assert owner_leave.status_code == 403

    member_leave = await api_client.post(f"/groups/{group_id}/leave", json={"userId": member.id})
    assert member_leave.status_code == 200
    assert member_leave.json()["data"]["deleted"] is False

    last_leave = await api_client.post(f"/groups/{group_id}/leave", json={"userId": owner.id})
    assert last_leave.json()["data"]["deleted"] is True
    assert last_leave.json()["message"] == "Group deleted successfully"

    gone = await api_client.get(f"/groups/{group_id}", params={"userId": owner.id})
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_group_posts_require_membership(api_client, make_user):
    owner = await make_user()
    outsider = await make_user()
    created = await api_client.post(f"/groups/user/{owner.id}", json={"name": "Crew"})
    group_id = created.json()["data"]["id"]

    post = await api_client.post(
        "/posts",
        json={"rawText": "Meeting at noon", "userId": owner.id, "groupIds": [group_id], "generate": False},
    )
    assert post.status_code == 201
    assert post.json()["data"]["audienceType"] == "groups"

    partial = await api_client.post(
        "/posts",
        json={"rawText": "Meeting at noon", "userId": outsider.id, "groupIds": [group_id]},
    )
    assert partial.status_code == 403

    listing = await api_client.get(f"/groups/{group_id}/posts", params={"userId": owner.id})
    assert listing.status_code == 200
    assert listing.json()["pagination"]["totalPosts"] == 1

    denied = await api_client.get(f"/groups/{group_id}/posts", params={"userId": outsider.id})
    assert denied.status_code == 403

    groups = await api_client.get(f"/groups/user/{owner.id}")
    assert [card["id"] for card in groups.json()["data"]["owned"]] == [group_id]
