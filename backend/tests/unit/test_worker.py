import pytest

from newsflash.domain.notifications.outbox import OutboundNotification
from newsflash.settings import settings


@pytest.mark.asyncio
async def test_worker_persists_records_and_pushes(services, make_user, push_transport):
    alice = await make_user("Alice Doe")
    bob = await make_user("Bob Roe", token="ExponentPushToken[bob]")
    await services.relationships.send_request(alice.id, bob.id)

    worker = services.dispatch_worker(block_ms=None)
    processed = await worker.process_once()

    assert processed == 1
    page = await services.notifications.list_for_user(bob.id)
    assert page.total == 1
    assert page.items[0].type == "friend_request"
    assert page.items[0].is_read is False
    assert len(push_transport.batches) == 1
    assert push_transport.batches[0][0]["to"] == "ExponentPushToken[bob]"
    assert await worker.process_once() == 0


@pytest.mark.asyncio
async def test_push_failure_does_not_lose_the_record(services, make_user, push_transport):
    user = await make_user(token="ExponentPushToken[x]")
    push_transport.fail_with = RuntimeError("push down")
    await services.outbox.publish(
        OutboundNotification(
            type="new_like",
            title="New Like",
            body="someone liked your newsflash",
            user_ids=[user.id],
            tokens=[user.expo_push_token],
        )
    )

    worker = services.dispatch_worker(block_ms=None)
    assert await worker.process_once() == 1
    assert (await services.notifications.stats(user.id))["unread"] == 1


@pytest.mark.asyncio
async def test_mark_read_and_stats(services, make_user):
    user = await make_user()
    records = await services.notifications.record(
        OutboundNotification(type="friend_request", title="t", body="b", user_ids=[user.id])
    )
    await services.notifications.record(
        OutboundNotification(type="post_like", title="t", body="b", user_ids=[user.id])
    )

    results = await services.notifications.mark_read(user.id, [records[0].id, "n-missing"])

    assert results == [
        {"id": records[0].id, "success": True},
        {"id": "n-missing", "success": False, "error": "Notification not found"},
    ]
    stats = await services.notifications.stats(user.id)
    assert stats["total"] == 2
    assert stats["unread"] == 1
    assert stats["byType"] == {"friend_request": 1, "post_like": 1}
    unread = await services.notifications.list_for_user(user.id, unread_only=True)
    assert [item.type for item in unread.items] == ["post_like"]


def test_outbound_fields_round_trip_lists():
    task = OutboundNotification(
        type="group_post",
        title="t",
        body="b",
        data={"groupIds": ["g1", "g2"]},
        user_ids=["u1", "u2"],
        tokens=["ExpoPushToken[a]"],
        channel_id="group_posts",
    )
    restored = OutboundNotification.from_fields(task.to_fields())
    assert restored.user_ids == ["u1", "u2"]
    assert restored.data == {"groupIds": ["g1", "g2"]}
    assert restored.channel_id == "group_posts"


@pytest.mark.asyncio
async def test_restarted_worker_does_not_replay_handled_entries(services, make_user, push_transport):
    user = await make_user(token="ExponentPushToken[x]")
    await services.outbox.publish(
        OutboundNotification(type="post_like", title="t", body="b", user_ids=[user.id], tokens=[user.expo_push_token])
    )

    first = services.dispatch_worker(block_ms=None)
    assert await first.process_once() == 1

    restarted = services.dispatch_worker(block_ms=None)
    assert await restarted.process_once() == 0
    assert (await services.notifications.stats(user.id))["total"] == 1
    assert len(push_transport.batches) == 1


@pytest.mark.asyncio
async def test_unacknowledged_entries_are_replayed(services, make_user, fake_redis):
    user = await make_user()
    await services.outbox.publish(
        OutboundNotification(type="friend_request", title="t", body="b", user_ids=[user.id])
    )
    await fake_redis.xgroup_create(settings.outbox_stream, settings.outbox_group, id="0", mkstream=True)
    claimed = await fake_redis.xreadgroup(
        settings.outbox_group, settings.outbox_consumer, {settings.outbox_stream: ">"}, count=10
    )
    assert len(claimed[0][1]) == 1

    worker = services.dispatch_worker(block_ms=None)
    assert await worker.process_once() == 1
    assert await worker.process_once() == 0
    assert (await services.notifications.stats(user.id))["total"] == 1
