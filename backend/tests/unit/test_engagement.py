import asyncio

import pytest

from newsflash.domain.errors import AuthorizationError, NotFoundError, ValidationError
from newsflash.domain.posts.newsflash import NewsflashOptions


@pytest.fixture
def make_post(services):
    async def _make(author_id: str, text: str = "I just shipped a release"):
        return await services.posts.create_post(author_id, text)

    return _make


@pytest.mark.asyncio
async def test_toggle_like_is_an_involution(services, make_user, make_post):
    author = await make_user()
    fan = await make_user()
    post = await make_post(author.id)

    liked = await services.engagement.toggle_like(post.id, fan.id)
    assert liked.is_liked is True
    assert liked.likes_count == post.likes_count + 1

    unliked = await services.engagement.toggle_like(post.id, fan.id)
    assert unliked.is_liked is False
    assert unliked.action == "unliked"
    stored = await services.gateway.get_post(post.id)
    assert stored.likes_count == post.likes_count
    assert fan.id not in stored.likes


@pytest.mark.asyncio
async def test_like_notifies_author_once(services, make_user, make_post, outbox_entries):
    author = await make_user(token="ExponentPushToken[author]")
    fan = await make_user("Fan Person")
    post = await make_post(author.id)

    await services.engagement.toggle_like(post.id, fan.id)
    await services.engagement.toggle_like(post.id, fan.id)
    await services.engagement.toggle_like(post.id, author.id)

    likes = [entry for entry in await outbox_entries() if entry["type"] == "post_like"]
    assert len(likes) == 1
    assert likes[0]["user_ids"] == author.id


@pytest.mark.asyncio
async def test_list_likes_returns_summaries(services, make_user, make_post):
    author = await make_user()
    fan = await make_user("Fan Person")
    post = await make_post(author.id)
    await services.engagement.toggle_like(post.id, fan.id)

    users = await services.engagement.list_likes(post.id)
    assert [user.full_name for user in users] == ["Fan Person"]


@pytest.mark.asyncio
async def test_only_comment_author_can_delete(services, make_user, make_post):
    author = await make_user()
    commenter = await make_user()
    other = await make_user()
    post = await make_post(author.id)
    comment = await services.engagement.add_comment(post.id, commenter.id, "  nice one  ")
    assert comment.text == "nice one"
    before = (await services.gateway.get_post(post.id)).comments_count

    with pytest.raises(AuthorizationError, match="your own comments"):
        await services.engagement.delete_comment(post.id, comment.id, other.id)

    updated = await services.engagement.delete_comment(post.id, comment.id, commenter.id)
    assert updated.comments_count == before - 1
    with pytest.raises(NotFoundError, match="Comment not found"):
        await services.engagement.delete_comment(post.id, comment.id, commenter.id)


@pytest.mark.asyncio
async def test_comment_text_bounds(services, make_user, make_post):
    author = await make_user()
    post = await make_post(author.id)
    with pytest.raises(ValidationError, match="cannot be empty"):
        await services.engagement.add_comment(post.id, author.id, "   ")
    with pytest.raises(ValidationError):
        await services.engagement.add_comment(post.id, author.id, "x" * 501)
    with pytest.raises(NotFoundError):
        await services.engagement.add_comment("p-missing", author.id, "hello")


@pytest.mark.asyncio
async def test_list_comments_paginates_newest_first(services, make_user):
    author = await make_user("Alice Doe")
    post = await services.posts.create_post(author.id, "Raw update", options=NewsflashOptions(generate=False))
    for index in range(3):
        await services.engagement.add_comment(post.id, author.id, f"comment {index}")

    page = await services.engagement.list_comments(post.id, page=1, limit=2)
    assert page.total == 3
    assert len(page.items) == 2
    assert page.block("Comments")["hasNextPage"] is True
    assert page.items[0].user.full_name == "Alice Doe"


@pytest.mark.asyncio
async def test_concurrent_likes_keep_counts_consistent(services, make_user, make_post):
    author = await make_user()
    fans = [await make_user() for _ in range(12)]
    post = await make_post(author.id)

    await asyncio.gather(*(services.engagement.toggle_like(post.id, fan.id) for fan in fans))

    stored = await services.gateway.get_post(post.id)
    assert stored.likes == {fan.id for fan in fans}
    assert stored.likes_count == 12


@pytest.mark.asyncio
async def test_entity_locks_released_after_use(services, make_user, make_post):
    author = await make_user()
    fan = await make_user()
    for _ in range(5):
        post = await make_post(author.id)
        await services.engagement.toggle_like(post.id, fan.id)
        await services.posts.delete_post(post.id, author.id)

    assert len(services.engagement.locks) == 0
