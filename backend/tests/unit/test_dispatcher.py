import pytest

from newsflash.domain.notifications.dispatcher import NotificationDispatcher, is_valid_push_token


class RecordingTransport:
    def __init__(self, fail_on_batch: int | None = None) -> None:
        self.batches: list[list[dict]] = []
        self.fail_on_batch = fail_on_batch

    async def send(self, messages):
        self.batches.append(list(messages))
        if self.fail_on_batch is not None and len(self.batches) == self.fail_on_batch:
            raise RuntimeError("expo unavailable")
        return [{"status": "ok"} for _ in messages]


def test_push_token_format():
    assert is_valid_push_token("ExponentPushToken[abc123]")
    assert is_valid_push_token("ExpoPushToken[abc123]")
    assert not is_valid_push_token("abc123")
    assert not is_valid_push_token(None)


@pytest.mark.asyncio
async def test_no_valid_tokens_reports_without_sending():
    transport = RecordingTransport()
    dispatcher = NotificationDispatcher(transport)

    result = await dispatcher.dispatch(["bogus", ""], "Title", "Body")

    assert result.success is False
    assert result.message == "No valid push tokens provided"
    assert result.invalid_tokens == ["bogus"]
    assert transport.batches == []


@pytest.mark.asyncio
async def test_messages_are_chunked_and_shaped():
    transport = RecordingTransport()
    dispatcher = NotificationDispatcher(transport, chunk_size=2)
    tokens = [f"ExponentPushToken[{index}]" for index in range(5)]

    result = await dispatcher.dispatch(tokens, "Hi", "There", {"postId": "p1"}, {"channel_id": "engagement"})

    assert [len(batch) for batch in transport.batches] == [2, 2, 1]
    message = transport.batches[0][0]
    assert message["channelId"] == "engagement"
    assert message["sound"] == "default"
    assert message["data"]["postId"] == "p1"
    assert "timestamp" in message["data"]
    assert result.sent == 5
    assert result.success is True


@pytest.mark.asyncio
async def test_failed_chunk_is_counted_not_raised():
    transport = RecordingTransport(fail_on_batch=1)
    dispatcher = NotificationDispatcher(transport, chunk_size=1)

    result = await dispatcher.dispatch(["ExpoPushToken[a]", "ExpoPushToken[b]"], "Hi", "There")

    assert result.sent == 1
    assert result.failed == 1
    assert result.errors == ["expo unavailable"]
    assert result.success is True


@pytest.mark.asyncio
async def test_dispatch_never_raises():
    class Exploding:
        async def send(self, messages):
            raise RuntimeError("boom")

    dispatcher = NotificationDispatcher(Exploding())
    result = await dispatcher.dispatch(["ExpoPushToken[a]"], "Hi", "There")
    assert result.success is False
    assert result.failed == 1
