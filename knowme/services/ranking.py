from collections import Counter

from knowme.models.deck import DeckFilter, GlobalRanking, GroupRanking
from knowme.services.deck import DeckEngine
from knowme.services.store import ProfileStore


def _top_percent(scores: list[tuple[str, int]], viewer_id: str) -> tuple[int, int]:
    """Return (viewer's known count, top percent) for a list of (user_id, known_count).

    Higher counts rank first; equal counts are ordered by user id so the rank is
    deterministic. A viewer missing from ``scores`` gets (0, 0).
    """
    if not scores:
        return 0, 0
    ordered = sorted(scores, key=lambda item: (-item[1], item[0]))
    for rank, (user_id, known) in enumerate(ordered, start=1):
        if user_id == viewer_id:
            return known, -(-rank * 100 // len(ordered))
    return 0, 0


class RankingEngine:
    """Percentile standing by number of people known."""

    def __init__(self, store: ProfileStore, deck_engine: DeckEngine | None = None):
        self.store = store
        self.deck_engine = deck_engine or DeckEngine(store)

    async def _known_in_group(self, group_id: str, user_id: str) -> int:
        deck = await self.deck_engine.build_deck(group_id, user_id)
        return len(DeckEngine.filter_deck(deck, DeckFilter.KNOWN))

    async def group_ranking(self, group_id: str, viewer_id: str) -> GroupRanking:
        memberships = await self.store.memberships.list_by_group(group_id)
        scores = [(m.user_id, await self._known_in_group(group_id, m.user_id)) for m in memberships]
        known, top = _top_percent(scores, viewer_id)
        return GroupRanking(known_count=known, top_percent=top)

    async def global_ranking(self, viewer_id: str) -> GlobalRanking:
        users = await self.store.users.list_all()
        statuses = await self.store.statuses.list_all()
        known_by_viewer = Counter(s.viewer_user_id for s in statuses if s.is_known)
        scores = [(u.id, known_by_viewer.get(u.id, 0)) for u in users]
        known, top = _top_percent(scores, viewer_id)
        return GlobalRanking(total_known=known, top_percent=top)

    async def group_progress(self, group_id: str, viewer_id: str) -> int:
        """Share of the viewer's deck already known, as a whole percentage (half rounds up)."""
        deck = await self.deck_engine.build_deck(group_id, viewer_id)
        if not deck:
            return 0
        known = len(DeckEngine.filter_deck(deck, DeckFilter.KNOWN))
        return (known * 200 + len(deck)) // (2 * len(deck))
