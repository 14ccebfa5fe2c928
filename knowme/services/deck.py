import asyncio
import time
import uuid
import weakref

from cachetools import TTLCache
from loguru import logger

from knowme.core.config import settings
from knowme.models.deck import CardStatus, DeckEntry, DeckFilter, DeckSnapshot, SwipeDirection
from knowme.models.profile import ProfileCard
from knowme.services.gesture import CommitSnapshot, GestureStateMachine
from knowme.services.store import ProfileStore

# Shared by every engine in the process so two requests for the same triple still queue up.
_STATUS_LOCKS: "weakref.WeakValueDictionary[tuple[str, str, str], asyncio.Lock]" = weakref.WeakValueDictionary()


def now_ms() -> int:
    return int(time.time() * 1000)


def matches_filter(entry: DeckEntry, mode: DeckFilter) -> bool:
    if mode == DeckFilter.KNOWN:
        return entry.is_known
    return not entry.is_known


class DeckEngine:
    """
    Builds a viewer's deck for a group and records what they know.

    A deck is every other member's profile card paired with the viewer's
    status for it in that group (None until the card is first reviewed).
    """

    def __init__(self, store: ProfileStore):
        self.store = store

    async def build_deck(self, group_id: str, viewer_id: str) -> list[DeckEntry]:
        memberships = await self.store.memberships.list_by_group(group_id)
        member_ids = [m.user_id for m in memberships if m.user_id != viewer_id]
        cards = await self.store.profiles.list_by_users(member_ids)
        statuses = await self.store.statuses.list_for_viewer_group(viewer_id, group_id)
        by_card = {s.profile_card_id: s for s in statuses}
        return [DeckEntry(card=card, status=by_card.get(card.id)) for card in cards if card.user_id != viewer_id]

    @staticmethod
    def filter_deck(deck: list[DeckEntry], mode: DeckFilter) -> list[DeckEntry]:
        return [entry for entry in deck if matches_filter(entry, mode)]

    async def mark_known(self, viewer_id: str, card_id: str, group_id: str, is_known: bool) -> CardStatus:
        key = (viewer_id, card_id, group_id)
        lock = _STATUS_LOCKS.get(key)
        if lock is None:
            lock = asyncio.Lock()
            _STATUS_LOCKS[key] = lock
        async with lock:
            status = CardStatus(
                id=uuid.uuid4().hex,
                viewer_user_id=viewer_id,
                profile_card_id=card_id,
                group_id=group_id,
                is_known=is_known,
                last_reviewed_at=now_ms(),
            )
            return await self.store.statuses.upsert(status)

    async def reset_knowledge(self, viewer_id: str, group_id: str) -> int:
        removed = await self.store.statuses.delete_for_viewer_group(viewer_id, group_id)
        logger.info(f"Reset {removed} card statuses for viewer {viewer_id} in group {group_id}")
        return removed

    async def known_cards(self, group_id: str, viewer_id: str) -> list[ProfileCard]:
        deck = await self.build_deck(group_id, viewer_id)
        return [entry.card for entry in self.filter_deck(deck, DeckFilter.KNOWN)]

    async def all_known_cards(self, viewer_id: str) -> list[ProfileCard]:
        """Distinct cards the viewer knows in any group, most recently reviewed first."""
        statuses = await self.store.statuses.list_for_viewer(viewer_id)
        known = sorted((s for s in statuses if s.is_known), key=lambda s: s.last_reviewed_at, reverse=True)
        cards: list[ProfileCard] = []
        seen: set[str] = set()
        for status in known:
            if status.profile_card_id in seen:
                continue
            seen.add(status.profile_card_id)
            card = await self.store.profiles.get(status.profile_card_id)
            if card:
                cards.append(card)
        return cards


class DeckSession:
    """
    A viewer's walk through one group's deck: filter mode, cursor and the swipe gesture.

    The cursor always points into the filtered view. When the view shrinks
    under it (a card was reclassified out of the filter) it clamps to the last
    card instead of failing.
    """

    def __init__(
        self,
        engine: DeckEngine,
        group_id: str,
        viewer_id: str,
        settle_duration: float | None = None,
    ):
        self.engine = engine
        self.group_id = group_id
        self.viewer_id = viewer_id
        self.entries: list[DeckEntry] = []
        self.filter = DeckFilter.UNKNOWN
        self._index = 0
        self.closed = False
        self.gesture = GestureStateMachine(
            on_commit=self._apply_commit,
            filter_mode=lambda: self.filter,
            current_target=self._current_card_id,
            settle_duration=settle_duration,
        )

    async def load(self) -> "DeckSession":
        self.entries = await self.engine.build_deck(self.group_id, self.viewer_id)
        return self

    async def refresh(self) -> None:
        await self.load()
        self._index = self.current_index

    @property
    def filtered(self) -> list[DeckEntry]:
        return DeckEngine.filter_deck(self.entries, self.filter)

    @property
    def current_index(self) -> int:
        length = len(self.filtered)
        if length == 0:
            return 0
        if self._index >= length:
            return max(0, length - 1)
        return max(0, self._index)

    @property
    def current(self) -> DeckEntry | None:
        view = self.filtered
        return view[self.current_index] if view else None

    @property
    def upcoming(self) -> DeckEntry | None:
        """The card drawn behind the current one, if there is more than one in view."""
        view = self.filtered
        if len(view) < 2:
            return None
        return view[(self.current_index + 1) % len(view)]

    def count(self, mode: DeckFilter) -> int:
        return len(DeckEngine.filter_deck(self.entries, mode))

    @property
    def can_reset(self) -> bool:
        return self.filter == DeckFilter.UNKNOWN and not self.filtered and self.count(DeckFilter.KNOWN) > 0

    def _current_card_id(self) -> str | None:
        entry = self.current
        return entry.card.id if entry else None

    def advance(self) -> None:
        self.gesture.collapse()
        length = len(self.filtered)
        if length == 0:
            self._index = 0
            return
        self._index = (self.current_index + 1) % length

    def set_filter(self, mode: DeckFilter) -> None:
        self.filter = mode
        self._index = 0
        self.gesture.collapse()

    async def mark(self, card_id: str, is_known: bool) -> CardStatus | None:
        """Record a card's status and move the cursor so no card is skipped.

        A card that drops out of the active view leaves its slot to the next
        card; a card that stays in view is stepped past.
        """
        entry = next((e for e in self.entries if e.card.id == card_id), None)
        if entry is None:
            return None
        view = self.filtered
        position = next((i for i, e in enumerate(view) if e.card.id == card_id), None)
        cursor = self.current_index

        status = await self.engine.mark_known(self.viewer_id, card_id, self.group_id, is_known)
        entry.status = status
        self.gesture.collapse()

        if position is None:
            self._index = cursor
        elif matches_filter(entry, self.filter):
            if position == cursor:
                self._index = cursor
                self.advance()
        elif position < cursor:
            self._index = cursor - 1
        else:
            self._index = cursor
        self._index = self.current_index
        return status

    async def mark_current(self, is_known: bool = True) -> CardStatus | None:
        card_id = self._current_card_id()
        if card_id is None:
            return None
        return await self.mark(card_id, is_known)

    async def reset(self) -> int:
        removed = await self.engine.reset_knowledge(self.viewer_id, self.group_id)
        await self.load()
        self.filter = DeckFilter.UNKNOWN
        self._index = 0
        self.gesture.collapse()
        return removed

    async def _apply_commit(self, snapshot: CommitSnapshot) -> None:
        if self.closed:
            return
        if snapshot.filter_mode == DeckFilter.UNKNOWN and snapshot.direction == SwipeDirection.RIGHT:
            if snapshot.target_id is not None:
                await self.mark(snapshot.target_id, True)
        else:
            self.advance()

    def snapshot(self) -> DeckSnapshot:
        view = self.filtered
        current = self.current
        upcoming = self.upcoming
        return DeckSnapshot(
            group_id=self.group_id,
            filter=self.filter,
            current=current.card if current else None,
            next=upcoming.card if upcoming else None,
            position=self.current_index + 1 if view else 0,
            total=len(view),
            unknown_count=self.count(DeckFilter.UNKNOWN),
            known_count=self.count(DeckFilter.KNOWN),
            is_expanded=self.gesture.is_expanded,
            offset=self.gesture.offset,
            gesture_state=self.gesture.state.value,
            can_reset=self.can_reset,
        )

    def close(self) -> None:
        self.closed = True
        self.gesture.dispose()


class _ClosingTTLCache(TTLCache):
    """TTLCache that closes sessions it evicts or expires."""

    def popitem(self):
        key, session = super().popitem()
        session.close()
        return key, session

    def expire(self, time=None):
        expired = super().expire(time)
        for _, session in expired or []:
            session.close()
        return expired


class DeckSessionRegistry:
    """In-process deck sessions keyed by (viewer, group).

    Every lookup restarts the session's TTL, so only idle sessions expire.
    """

    def __init__(
        self,
        maxsize: int | None = None,
        ttl: int | None = None,
        settle_duration: float | None = None,
        timer=time.monotonic,
    ):
        self._sessions = _ClosingTTLCache(
            maxsize=maxsize or settings.DECK_SESSION_MAX,
            ttl=ttl or settings.DECK_SESSION_TTL_SECONDS,
            timer=timer,
        )
        self.settle_duration = settle_duration

    async def get_or_create(self, engine: DeckEngine, group_id: str, viewer_id: str) -> DeckSession:
        key = (viewer_id, group_id)
        session = self._sessions.get(key)
        if session is not None and not session.closed:
            # TTLCache counts from insertion; re-inserting slides the expiry
            self._sessions[key] = session
            return session
        session = DeckSession(engine, group_id, viewer_id, settle_duration=self.settle_duration)
        await session.load()
        self._sessions[key] = session
        logger.debug(f"Opened deck session for viewer {viewer_id} in group {group_id}")
        return session

    def close(self, viewer_id: str, group_id: str) -> None:
        session = self._sessions.pop((viewer_id, group_id), None)
        if session is not None:
            session.close()

    def close_all(self) -> None:
        for session in list(self._sessions.values()):
            session.close()
        self._sessions.clear()


deck_sessions = DeckSessionRegistry()
