import httpx
import pytest

from newsflash.domain.errors import ValidationError
from newsflash.domain.posts.newsflash import (
    ChatCompletionNewsflash,
    NewsflashOptions,
    NewsflashWriter,
    headline_prefix,
    rewrite,
)


def test_rewrite_is_third_person_and_deterministic():
    first = rewrite("I just finished my homework", "Alice Doe")
    assert first == "URGENT: Alice Doe just finished Alice's homework."
    assert rewrite("I just finished my homework", "Alice Doe") == first


@pytest.mark.parametrize(
    ("text", "prefix"),
    [
        ("Finally home", "URGENT:"),
        ("Starting a new job", "DEVELOPING:"),
        ("Planning a surprise party", "EXCLUSIVE:"),
        ("Ate a sandwich", "BREAKING:"),
    ],
)
def test_headline_prefix(text, prefix):
    assert headline_prefix(text) == prefix


def test_rewrite_handles_contractions_and_punctuation():
    assert rewrite("I'll call my mom", "Bob Roe") == "BREAKING: Bob Roe will call Bob's mom."
    assert rewrite("I'm here!", "Bob Roe") == "BREAKING: Bob Roe is here!"
    assert rewrite("me and myself", "Bob Roe").endswith(".")


def test_rewrite_validates_input():
    with pytest.raises(ValidationError):
        rewrite("   ", "Alice")
    with pytest.raises(ValidationError):
        rewrite("x" * 281, "Alice")
    with pytest.raises(ValidationError):
        rewrite("hello", " ")


@pytest.mark.asyncio
async def test_writer_returns_raw_text_when_generation_disabled():
    result = await NewsflashWriter().write("  plain update ", "Alice", NewsflashOptions(generate=False))
    assert result.text == "plain update"
    assert result.method == "raw"


@pytest.mark.asyncio
async def test_writer_falls_back_when_remote_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "overloaded"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        writer = NewsflashWriter(ChatCompletionNewsflash(http=http, api_key="sk-test"))
        result = await writer.write("I just won", "Alice Doe")

    assert result.method == "deterministic"
    assert result.text.startswith("URGENT: Alice Doe")


@pytest.mark.asyncio
async def test_writer_uses_remote_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"choices": [{"message": {"content": " Local hero wins. "}}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        writer = NewsflashWriter(ChatCompletionNewsflash(http=http, api_key="sk-test"))
        result = await writer.write("I just won", "Alice Doe", NewsflashOptions(length="long"))

    assert result.method == "remote"
    assert result.text == "Local hero wins."
    assert seen["auth"] == "Bearer sk-test"
