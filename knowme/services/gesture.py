import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum

from loguru import logger
from pydantic import BaseModel

from knowme.core.config import settings
from knowme.core.constants import EXIT_OFFSET, SMALL_MOTION_THRESHOLD, SWIPE_COMMIT_THRESHOLD
from knowme.models.deck import DeckFilter, SwipeDirection


class GestureState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"


class CommitSnapshot(BaseModel):
    """Everything the delayed effect needs, frozen at the moment of commit."""

    direction: SwipeDirection
    filter_mode: DeckFilter
    target_id: str | None = None


class GestureStateMachine:
    """
    Turns a continuous horizontal drag (or a button press) into a discrete swipe.

    IDLE -> DRAGGING -> COMMITTING | IDLE. A commit throws the card to the exit
    offset straight away and runs ``on_commit`` once the settle duration has
    elapsed, then returns to IDLE. Input that does not fit the current state is
    ignored; nothing here raises for out-of-order events.
    """

    def __init__(
        self,
        on_commit: Callable[[CommitSnapshot], Awaitable[None]],
        filter_mode: Callable[[], DeckFilter],
        current_target: Callable[[], str | None] | None = None,
        settle_duration: float | None = None,
        commit_threshold: float = SWIPE_COMMIT_THRESHOLD,
        small_motion_threshold: float = SMALL_MOTION_THRESHOLD,
        exit_offset: float = EXIT_OFFSET,
    ):
        self._on_commit = on_commit
        self._filter_mode = filter_mode
        self._current_target = current_target or (lambda: None)
        self.settle_duration = settings.SWIPE_SETTLE_MS / 1000 if settle_duration is None else settle_duration
        self.commit_threshold = commit_threshold
        self.small_motion_threshold = small_motion_threshold
        self.exit_offset = exit_offset

        self.state = GestureState.IDLE
        self.origin_x = 0.0
        self.drag_offset = 0.0
        self.exit_x: float | None = None
        self.was_dragged = False
        self.is_expanded = False
        self._pending: asyncio.Task | None = None
        self._disposed = False

    @property
    def offset(self) -> float:
        """Horizontal offset the card should be drawn at."""
        return self.exit_x if self.exit_x is not None else self.drag_offset

    def on_drag_start(self, origin_x: float) -> bool:
        if self._disposed or self.state != GestureState.IDLE:
            logger.debug(f"Ignoring drag start while {self.state.value}")
            return False
        self.state = GestureState.DRAGGING
        self.origin_x = origin_x
        self.drag_offset = 0.0
        self.was_dragged = False
        return True

    def on_drag_move(self, current_x: float) -> float:
        if self.state != GestureState.DRAGGING:
            logger.debug(f"Ignoring drag move while {self.state.value}")
            return self.offset
        delta = current_x - self.origin_x
        if abs(delta) > self.small_motion_threshold:
            self.was_dragged = True
        self.drag_offset = delta
        return delta

    def on_drag_end(self) -> SwipeDirection | None:
        """Finish the drag; returns the committed direction, or None when the card snaps back."""
        if self.state != GestureState.DRAGGING:
            logger.debug(f"Ignoring drag end while {self.state.value}")
            return None
        delta = self.drag_offset
        if delta > self.commit_threshold:
            direction = SwipeDirection.RIGHT
        elif delta < -self.commit_threshold:
            direction = SwipeDirection.LEFT
        else:
            self._snap_back()
            return None
        self._begin_commit(direction)
        return direction

    def commit(self, direction: SwipeDirection) -> bool:
        """Button-driven swipe. Skips DRAGGING and goes straight to COMMITTING."""
        if self._disposed or self.state == GestureState.COMMITTING:
            logger.debug(f"Ignoring {direction.value} commit while {self.state.value}")
            return False
        self._begin_commit(direction)
        return True

    def tap(self) -> bool:
        """Toggle the expanded card. Returns True when the tap was honoured."""
        if self.was_dragged:
            # the click that follows a real drag's pointer-up
            self.was_dragged = False
            return False
        if self.state != GestureState.IDLE or self._pending is not None:
            return False
        self.is_expanded = not self.is_expanded
        return True

    def collapse(self) -> None:
        self.is_expanded = False

    async def wait_settled(self) -> None:
        """Wait for a pending commit effect; re-raises whatever the effect raised."""
        pending = self._pending
        if pending is not None:
            await pending

    def dispose(self) -> None:
        """Drop any pending effect. The machine ignores all input afterwards."""
        self._disposed = True
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self.was_dragged = False
        self._reset_position()
        self.state = GestureState.IDLE

    def _snap_back(self) -> None:
        self._reset_position()
        self.state = GestureState.IDLE

    def _reset_position(self) -> None:
        self.drag_offset = 0.0
        self.exit_x = None

    def _begin_commit(self, direction: SwipeDirection) -> None:
        snapshot = CommitSnapshot(
            direction=direction,
            filter_mode=self._filter_mode(),
            target_id=self._current_target(),
        )
        self.state = GestureState.COMMITTING
        self.exit_x = self.exit_offset if direction == SwipeDirection.RIGHT else -self.exit_offset
        self._pending = asyncio.get_running_loop().create_task(self._settle(snapshot))
        self._pending.add_done_callback(_log_effect_failure)

    async def _settle(self, snapshot: CommitSnapshot) -> None:
        try:
            if self.settle_duration > 0:
                await asyncio.sleep(self.settle_duration)
            if self._disposed:
                return
            await self._on_commit(snapshot)
        except asyncio.CancelledError:
            logger.debug(f"Swipe {snapshot.direction.value} cancelled before it settled")
            raise
        finally:
            if self._pending is asyncio.current_task():
                self._pending = None
                # the drag that led here belonged to the card that just left
                self.was_dragged = False
                self._snap_back()
                self.collapse()


def _log_effect_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Swipe effect failed: {exc}")
