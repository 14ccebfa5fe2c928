import asyncio

import pytest

from knowme.models.deck import DeckFilter, SwipeDirection
from knowme.services.gesture import CommitSnapshot, GestureState, GestureStateMachine


class Recorder:
    def __init__(self):
        self.commits: list[CommitSnapshot] = []
        self.filter = DeckFilter.UNKNOWN
        self.target = "card-a"

    async def on_commit(self, snapshot: CommitSnapshot) -> None:
        self.commits.append(snapshot)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def machine(recorder: Recorder) -> GestureStateMachine:
    return GestureStateMachine(
        on_commit=recorder.on_commit,
        filter_mode=lambda: recorder.filter,
        current_target=lambda: recorder.target,
        settle_duration=0,
    )


def drag(machine: GestureStateMachine, delta: float, origin: float = 100.0) -> SwipeDirection | None:
    machine.on_drag_start(origin)
    machine.on_drag_move(origin + delta)
    return machine.on_drag_end()


@pytest.mark.parametrize("delta", [74, 75, -75, 0])
async def test_drag_inside_threshold_snaps_back(machine, recorder, delta):
    assert drag(machine, delta) is None
    assert machine.state == GestureState.IDLE
    assert machine.offset == 0
    await machine.wait_settled()
    assert recorder.commits == []


@pytest.mark.parametrize("delta, direction", [(76, SwipeDirection.RIGHT), (-76, SwipeDirection.LEFT)])
async def test_drag_past_threshold_commits(machine, recorder, delta, direction):
    assert drag(machine, delta) == direction
    assert machine.state == GestureState.COMMITTING
    assert machine.offset == (1000 if direction == SwipeDirection.RIGHT else -1000)

    await machine.wait_settled()
    assert [c.direction for c in recorder.commits] == [direction]
    assert machine.state == GestureState.IDLE
    assert machine.offset == 0


async def test_drag_start_is_ignored_while_committing(machine):
    machine.commit(SwipeDirection.RIGHT)
    assert machine.on_drag_start(0) is False
    assert machine.state == GestureState.COMMITTING
    await machine.wait_settled()


async def test_second_commit_is_ignored_until_settled(machine, recorder):
    assert machine.commit(SwipeDirection.LEFT) is True
    assert machine.commit(SwipeDirection.RIGHT) is False
    await machine.wait_settled()
    assert len(recorder.commits) == 1
    assert machine.commit(SwipeDirection.RIGHT) is True
    await machine.wait_settled()
    assert len(recorder.commits) == 2


async def test_move_and_end_without_start_do_nothing(machine, recorder):
    assert machine.on_drag_move(500) == 0
    assert machine.on_drag_end() is None
    assert machine.state == GestureState.IDLE
    assert recorder.commits == []


async def test_commit_captures_filter_and_target_at_commit_time(machine, recorder):
    machine.commit(SwipeDirection.RIGHT)
    recorder.filter = DeckFilter.KNOWN
    recorder.target = "card-b"
    await machine.wait_settled()
    assert recorder.commits[0].filter_mode == DeckFilter.UNKNOWN
    assert recorder.commits[0].target_id == "card-a"


async def test_tap_toggles_expanded(machine):
    assert machine.tap() is True
    assert machine.is_expanded is True
    assert machine.tap() is True
    assert machine.is_expanded is False


async def test_tap_after_real_drag_is_suppressed(machine):
    drag(machine, 30)
    assert machine.tap() is False
    assert machine.is_expanded is False
    assert machine.tap() is True


async def test_small_wiggle_still_counts_as_tap(machine):
    drag(machine, 4)
    assert machine.tap() is True
    assert machine.is_expanded is True


async def test_tap_is_ignored_while_committing(machine):
    machine.commit(SwipeDirection.LEFT)
    assert machine.tap() is False
    await machine.wait_settled()


async def test_commit_collapses_expanded_card(machine):
    machine.tap()
    machine.commit(SwipeDirection.LEFT)
    await machine.wait_settled()
    assert machine.is_expanded is False


async def test_dispose_cancels_pending_effect(recorder):
    machine = GestureStateMachine(
        on_commit=recorder.on_commit,
        filter_mode=lambda: recorder.filter,
        settle_duration=0.05,
    )
    machine.commit(SwipeDirection.RIGHT)
    machine.dispose()
    await asyncio.sleep(0.1)

    assert recorder.commits == []
    assert machine.on_drag_start(0) is False
    assert machine.commit(SwipeDirection.LEFT) is False


async def test_failing_effect_still_returns_to_idle():
    async def boom(_snapshot):
        raise RuntimeError("store down")

    machine = GestureStateMachine(on_commit=boom, filter_mode=lambda: DeckFilter.UNKNOWN, settle_duration=0)
    machine.commit(SwipeDirection.RIGHT)
    with pytest.raises(RuntimeError):
        await machine.wait_settled()
    assert machine.state == GestureState.IDLE
    assert machine.offset == 0


async def test_tap_on_next_card_after_drag_swipe_is_honoured(machine, recorder):
    assert drag(machine, 100) == SwipeDirection.RIGHT
    await machine.wait_settled()
    assert machine.was_dragged is False
    assert machine.tap() is True
    assert machine.is_expanded is True


async def test_dispose_clears_drag_flag(machine):
    drag(machine, 30)
    machine.dispose()
    assert machine.was_dragged is False
