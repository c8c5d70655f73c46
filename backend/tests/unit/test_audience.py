import pytest

from newsflash.domain.errors import AuthorizationError, ValidationError
from newsflash.domain.posts.audience import AudienceRequest
from newsflash.domain.posts.newsflash import NewsflashOptions


async def _befriend(services, a, b):
    await services.relationships.send_request(a.id, b.id)
    await services.relationships.accept(a.id, b.id)


@pytest.mark.asyncio
async def test_friend_post_to_non_friend_creates_nothing(services, make_user, outbox_entries):
    author = await make_user("Alice Doe")
    stranger = await make_user("Sam Stranger")

    with pytest.raises(AuthorizationError, match="only post to your friends"):
        await services.posts.create_post(
            author.id,
            "I just adopted a cat",
            AudienceRequest(audience_type="friend", target_friend_id=stranger.id),
        )

    assert await services.gateway.list_posts() == []
    assert await outbox_entries() == []


@pytest.mark.asyncio
async def test_groups_post_is_all_or_nothing(services, make_user, outbox_entries):
    author = await make_user("Alice Doe")
    other = await make_user("Olga Owner")
    g1 = await services.groups.create_group(author.id, "Mine")
    g2 = await services.groups.create_group(other.id, "Theirs")
    entries_before = await outbox_entries()

    with pytest.raises(AuthorizationError, match="one or more groups"):
        await services.posts.create_post(
            author.id,
            "I finished the marathon",
            AudienceRequest(audience_type="groups", group_ids=[g1.id, g2.id]),
        )

    assert await services.gateway.list_posts() == []
    assert await outbox_entries() == entries_before


@pytest.mark.asyncio
async def test_friend_post_notifies_only_target(services, make_user, outbox_entries):
    author = await make_user("Alice Doe")
    friend = await make_user("Bob Roe", token="ExponentPushToken[bob]")
    other_friend = await make_user("Cy Coe")
    await _befriend(services, author, friend)
    await _befriend(services, author, other_friend)
    before = len(await outbox_entries())

    post = await services.posts.create_post(
        author.id,
        "I just got promoted",
        AudienceRequest(audience_type="friend", target_friend_id=friend.id),
    )

    assert post.visibility == "friend_only"
    entries = (await outbox_entries())[before:]
    assert len(entries) == 1
    assert entries[0]["type"] == "friend_post"
    assert entries[0]["user_ids"] == friend.id
    assert entries[0]["tokens"] == "ExponentPushToken[bob]"


@pytest.mark.asyncio
async def test_friends_post_reaches_every_friend_but_author(services, make_user):
    author = await make_user()
    b = await make_user()
    c = await make_user()
    await _befriend(services, author, b)
    await _befriend(services, c, author)

    resolution = await services.resolver.resolve(AudienceRequest(audience_type="friends"), author)

    assert resolution.visibility == "friends_only"
    assert sorted(resolution.recipient_ids) == sorted([b.id, c.id])
    assert author.id not in resolution.recipient_ids


@pytest.mark.asyncio
async def test_groups_resolution_unions_members(services, make_user):
    author = await make_user()
    m1 = await make_user()
    m2 = await make_user()
    g1 = await services.groups.create_group(author.id, "One")
    g2 = await services.groups.create_group(author.id, "Two")
    for group, member in ((g1, m1), (g2, m1), (g2, m2)):
        await services.groups.invite(group.id, author.id, [member.id])
        await services.groups.accept_invite(group.id, member.id)

    resolution = await services.resolver.resolve(
        AudienceRequest(group_ids=[g1.id, g2.id]),
        author,
    )

    assert resolution.audience_type == "groups"
    assert resolution.visibility == "groups_only"
    assert sorted(resolution.recipient_ids) == sorted([m1.id, m2.id])


@pytest.mark.asyncio
async def test_public_post_has_no_targeted_recipients_under_friendship(services, make_user):
    author = await make_user()
    friend = await make_user()
    await _befriend(services, author, friend)

    resolution = await services.resolver.resolve(AudienceRequest(), author)

    assert resolution.audience_type == "public"
    assert resolution.recipient_ids == []


def test_audience_shape_is_validated():
    with pytest.raises(ValueError):
        AudienceRequest(audience_type="friend")
    with pytest.raises(ValueError):
        AudienceRequest(audience_type="public", group_ids=["g1"])
    with pytest.raises(ValueError):
        AudienceRequest(audience_type="groups", group_ids=["g1", "g1"])
    with pytest.raises(ValueError):
        AudienceRequest(audience_type="groups", group_ids=[f"g{index}" for index in range(6)])
    assert AudienceRequest(group_ids=["g1"]).effective_type() == "groups"


@pytest.mark.asyncio
async def test_visibility_filters_feed(services, make_user):
    author = await make_user()
    friend = await make_user()
    stranger = await make_user()
    await _befriend(services, author, friend)
    raw = NewsflashOptions(generate=False)
    public = await services.posts.create_post(author.id, "public note", AudienceRequest(), raw)
    friends_only = await services.posts.create_post(
        author.id, "friends note", AudienceRequest(audience_type="friends"), raw
    )

    stranger_feed = await services.posts.list_feed(stranger.id)
    friend_feed = await services.posts.list_feed(friend.id)

    assert {post.id for post in stranger_feed.items} == {public.id}
    assert {post.id for post in friend_feed.items} == {public.id, friends_only.id}
    with pytest.raises(AuthorizationError):
        await services.posts.get_visible_post(friends_only.id, stranger.id)


@pytest.mark.asyncio
async def test_post_text_bounds(services, make_user):
    author = await make_user()
    with pytest.raises(ValidationError):
        await services.posts.create_post(author.id, "x" * 281)
    with pytest.raises(ValidationError):
        await services.posts.create_post(author.id, "   ")
