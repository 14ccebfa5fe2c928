import pytest

from knowme.services.ranking import RankingEngine, _top_percent


@pytest.fixture
def ranking(store, engine) -> RankingEngine:
    return RankingEngine(store, engine)


def test_top_percent_rounds_up_and_breaks_ties_by_user_id():
    scores = [("d", 1), ("a", 3), ("c", 3), ("b", 0)]
    assert _top_percent(scores, "a") == (3, 25)
    assert _top_percent(scores, "c") == (3, 50)
    assert _top_percent(scores, "b") == (0, 100)
    assert _top_percent([("a", 1), ("b", 1), ("c", 1)], "a") == (1, 34)


def test_top_percent_for_missing_viewer_or_empty_scores():
    assert _top_percent([], "a") == (0, 0)
    assert _top_percent([("b", 2)], "a") == (0, 0)


async def test_single_member_is_top_hundred(ranking, make_user, make_group):
    alice = await make_user("Alice", user_id="alice")
    group = await make_group(alice)
    result = await ranking.group_ranking(group.id, alice.id)
    assert (result.known_count, result.top_percent) == (0, 100)


async def test_second_of_four_is_top_fifty(ranking, engine, make_user, make_group):
    a = await make_user("A", user_id="a")
    b = await make_user("B", user_id="b")
    c = await make_user("C", user_id="c")
    d = await make_user("D", user_id="d")
    group = await make_group(a, b, c, d)

    for card in ("card-b", "card-c", "card-d"):
        await engine.mark_known("a", card, group.id, True)
    for card in ("card-a", "card-c"):
        await engine.mark_known("b", card, group.id, True)
    await engine.mark_known("c", "card-a", group.id, True)

    result = await ranking.group_ranking(group.id, "b")
    assert (result.known_count, result.top_percent) == (2, 50)


async def test_group_ranking_ignores_other_groups(ranking, engine, make_user, make_group):
    a = await make_user("A", user_id="a")
    b = await make_user("B", user_id="b")
    group = await make_group(a, b, join_code="ONE")
    other = await make_group(a, b, join_code="TWO")
    await engine.mark_known("b", "card-a", other.id, True)

    result = await ranking.group_ranking(group.id, "b")
    assert (result.known_count, result.top_percent) == (0, 100)


async def test_group_ranking_for_empty_group(ranking, store):
    result = await ranking.group_ranking("missing", "alice")
    assert (result.known_count, result.top_percent) == (0, 0)


async def test_global_ranking_counts_every_group(ranking, engine, make_user, make_group):
    a = await make_user("A", user_id="a")
    b = await make_user("B", user_id="b")
    await make_user("C", user_id="c")
    one = await make_group(a, b, join_code="ONE")
    two = await make_group(a, b, join_code="TWO")
    await engine.mark_known("a", "card-b", one.id, True)
    await engine.mark_known("a", "card-b", two.id, True)
    await engine.mark_known("b", "card-a", one.id, False)

    result = await ranking.global_ranking("a")
    assert (result.total_known, result.top_percent) == (2, 34)
    result = await ranking.global_ranking("c")
    assert (result.total_known, result.top_percent) == (0, 100)


async def test_group_progress_rounds_half_up(ranking, engine, make_user, make_group):
    viewer = await make_user("Viewer", user_id="v")
    others = [await make_user(f"Member {i}", user_id=f"m{i}") for i in range(8)]
    group = await make_group(viewer, *others)
    assert await ranking.group_progress(group.id, "v") == 0

    await engine.mark_known("v", "card-m0", group.id, True)
    # 1 of 8 is 12.5%
    assert await ranking.group_progress(group.id, "v") == 13


async def test_group_progress_for_lone_member(ranking, make_user, make_group):
    alice = await make_user("Alice", user_id="alice")
    group = await make_group(alice)
    assert await ranking.group_progress(group.id, alice.id) == 0
