from enum import Enum

from pydantic import BaseModel

from knowme.models.profile import ProfileCard


class DeckFilter(str, Enum):
    UNKNOWN = "UNKNOWN"
    KNOWN = "KNOWN"


class SwipeDirection(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class CardStatus(BaseModel):
    id: str
    viewer_user_id: str
    profile_card_id: str
    group_id: str
    is_known: bool = False
    last_reviewed_at: int  # epoch milliseconds


class DeckEntry(BaseModel):
    card: ProfileCard
    status: CardStatus | None = None

    @property
    def is_known(self) -> bool:
        return self.status is not None and self.status.is_known


class DeckSnapshot(BaseModel):
    """What a client needs to render the deck screen."""

    group_id: str
    filter: DeckFilter
    current: ProfileCard | None = None
    next: ProfileCard | None = None
    position: int = 0
    total: int = 0
    unknown_count: int = 0
    known_count: int = 0
    is_expanded: bool = False
    offset: float = 0.0
    gesture_state: str = "idle"
    can_reset: bool = False


class GroupRanking(BaseModel):
    known_count: int = 0
    top_percent: int = 0


class GlobalRanking(BaseModel):
    total_known: int = 0
    top_percent: int = 0
