import pytest

from newsflash.domain.errors import AuthorizationError, NotFoundError, ValidationError


@pytest.mark.asyncio
async def test_owner_must_transfer_before_leaving(services, make_user):
    owner = await make_user()
    m1 = await make_user()
    group = await services.groups.create_group(owner.id, "g1")
    await services.groups.invite(group.id, owner.id, [m1.id])
    await services.groups.accept_invite(group.id, m1.id)

    with pytest.raises(AuthorizationError, match="transfer ownership"):
        await services.groups.leave(group.id, owner.id)

    left = await services.groups.leave(group.id, m1.id)
    assert left.deleted is False
    assert left.remaining_members == 1

    deleted = await services.groups.leave(group.id, owner.id)
    assert deleted.deleted is True
    assert await services.gateway.get_group(group.id) is None


@pytest.mark.asyncio
async def test_invite_skips_existing_and_requires_membership(services, make_user, outbox_entries):
    owner = await make_user("Olga Owner")
    invitee = await make_user("Ivy Invitee")
    outsider = await make_user()
    group = await services.groups.create_group(owner.id, "Book club")

    result = await services.groups.invite(group.id, owner.id, [invitee.id, owner.id])
    assert result.invited_users == [invitee.id]
    assert result.skipped_users == [owner.id]

    again = await services.groups.invite(group.id, owner.id, [invitee.id])
    assert again.invited_users == []

    with pytest.raises(AuthorizationError):
        await services.groups.invite(group.id, outsider.id, [invitee.id])
    with pytest.raises(ValidationError):
        await services.groups.invite(group.id, owner.id, [])
    with pytest.raises(NotFoundError):
        await services.groups.invite(group.id, owner.id, ["u-missing"])

    invitations = [entry for entry in await outbox_entries() if entry["type"] == "group_invitation"]
    assert len(invitations) == 1
    assert invitations[0]["user_ids"] == invitee.id


@pytest.mark.asyncio
async def test_accept_decline_and_listing(services, make_user):
    owner = await make_user()
    joiner = await make_user()
    decliner = await make_user()
    group = await services.groups.create_group(owner.id, "Runners", "Morning runs")
    await services.groups.invite(group.id, owner.id, [joiner.id, decliner.id])

    with pytest.raises(AuthorizationError, match="No invitation found"):
        await services.groups.accept_invite(group.id, owner.id)

    await services.groups.accept_invite(group.id, joiner.id)
    await services.groups.decline_invite(group.id, decliner.id)

    detail = await services.groups.get_group(group.id, joiner.id)
    assert {member.id for member in detail.members} == {owner.id, joiner.id}
    assert detail.invite_count == 0

    owner_groups = await services.groups.list_user_groups(owner.id)
    joiner_groups = await services.groups.list_user_groups(joiner.id)
    assert [card.id for card in owner_groups.owned] == [group.id]
    assert [card.id for card in joiner_groups.member] == [group.id]
    with pytest.raises(AuthorizationError):
        await services.groups.get_group(group.id, decliner.id)


@pytest.mark.asyncio
async def test_transfer_ownership(services, make_user):
    owner = await make_user()
    member = await make_user()
    group = await services.groups.create_group(owner.id, "Team")
    await services.groups.invite(group.id, owner.id, [member.id])
    await services.groups.accept_invite(group.id, member.id)

    with pytest.raises(AuthorizationError):
        await services.groups.transfer_ownership(group.id, member.id, member.id)

    updated = await services.groups.transfer_ownership(group.id, owner.id, member.id)
    assert updated.owner_id == member.id
    left = await services.groups.leave(group.id, owner.id)
    assert left.deleted is False


@pytest.mark.asyncio
async def test_group_name_bounds(services, make_user):
    owner = await make_user()
    with pytest.raises(ValidationError):
        await services.groups.create_group(owner.id, "   ")
    with pytest.raises(ValidationError):
        await services.groups.create_group(owner.id, "x" * 101)
