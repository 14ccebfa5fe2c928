import pytest

from knowme.core.exceptions import DuplicateJoinCode, InvalidJoinCode, NotFound
from knowme.models.group import GroupUpdate
from knowme.services.groups import GroupService, resolve_join_code


@pytest.mark.parametrize(
    "scanned, expected",
    [
        ("eng2024", "ENG2024"),
        ("  Eng2024 \n", "ENG2024"),
        ("https://knowme.app/join?code=design1", "DESIGN1"),
        ("https://knowme.app/?ref=qr&code=sales24", "SALES24"),
        ("https://knowme.app/join", "HTTPS://KNOWME.APP/JOIN"),
        ("", ""),
    ],
)
def test_resolve_join_code(scanned, expected):
    assert resolve_join_code(scanned) == expected


async def test_creator_is_first_member(group_service, make_user, make_group):
    alice = await make_user("Alice")
    group = await make_group(alice, join_code="eng2024")
    assert group.join_code == "ENG2024"
    assert [u.id for u in await group_service.members(group.id)] == [alice.id]


async def test_join_by_lowercase_code(group_service, make_user, make_group):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    group = await make_group(alice, join_code="ENG2024")

    found, joined = await group_service.join_by_code("eng2024", bob.id)
    assert found.id == group.id
    assert joined is True
    assert await group_service.is_member(group.id, bob.id)


async def test_joining_twice_is_a_noop(group_service, store, make_user, make_group):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    group = await make_group(alice, bob)

    _, joined = await group_service.join_by_code(group.join_code, bob.id)
    assert joined is False
    assert len(await store.memberships.list_by_group(group.id)) == 2


async def test_join_with_unknown_code_raises(group_service, make_user):
    bob = await make_user("Bob")
    with pytest.raises(NotFound):
        await group_service.join_by_code("NOPE", bob.id)


async def test_create_with_taken_code_raises(group_service, make_user, make_group):
    alice = await make_user("Alice")
    await make_group(alice, join_code="ENG2024")
    with pytest.raises(DuplicateJoinCode):
        await group_service.create_group(alice, "Copy", "", "Eng2024")


async def test_update_group_changes_code_and_timestamp(group_service, make_user, make_group):
    alice = await make_user("Alice")
    group = await make_group(alice, join_code="OLD")
    updated = await group_service.update_group(group.id, GroupUpdate(join_code="new", name="Platform"))
    assert (updated.join_code, updated.name) == ("NEW", "Platform")
    assert updated.updated_at >= group.updated_at
    assert (await group_service.find_by_code("new")).id == group.id


async def test_update_missing_group_raises(group_service):
    with pytest.raises(NotFound):
        await group_service.update_group("missing", GroupUpdate(name="x"))


async def test_groups_for_user(group_service, make_user, make_group):
    alice = await make_user("Alice")
    bob = await make_user("Bob")
    one = await make_group(alice, bob, join_code="ONE")
    await make_group(alice, join_code="TWO")
    assert [g.id for g in await group_service.groups_for_user(bob.id)] == [one.id]


async def test_search_public_skips_blank_query(group_service, make_user, make_group):
    alice = await make_user("Alice")
    await make_group(alice)
    assert await group_service.search_public("  ") == []
    assert len(await group_service.search_public("engin")) == 1


async def test_invite_skips_blank_emails(group_service, make_user, make_group):
    alice = await make_user("Alice")
    group = await make_group(alice)
    invitations = await group_service.invite(group.id, ["bob@example.com", " ", "carol@example.com"])
    assert [i.email for i in invitations] == ["bob@example.com", "carol@example.com"]
    assert len(await group_service.invitations(group.id)) == 2


async def test_join_link_carries_code(make_user, make_group):
    alice = await make_user("Alice")
    group = await make_group(alice, join_code="ENG2024")
    assert GroupService.join_link(group).endswith("?code=ENG2024")


@pytest.mark.parametrize("code", ["", "   ", "\n"])
async def test_blank_join_code_is_rejected(group_service, make_user, code):
    alice = await make_user("Alice")
    with pytest.raises(InvalidJoinCode):
        await group_service.create_group(alice, "Eng", "", code)
    assert await group_service.groups_for_user(alice.id) == []


async def test_update_to_blank_join_code_is_rejected(group_service, make_user, make_group):
    alice = await make_user("Alice")
    group = await make_group(alice, join_code="ENG2024")
    with pytest.raises(InvalidJoinCode):
        await group_service.update_group(group.id, GroupUpdate(join_code="  "))
    assert (await group_service.get_group(group.id)).join_code == "ENG2024"
