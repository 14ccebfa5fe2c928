from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from knowme.api.deps import get_deck_engine, get_deck_sessions, require_membership
from knowme.models.deck import CardStatus, DeckFilter, DeckSnapshot, SwipeDirection
from knowme.models.user import User
from knowme.services.deck import DeckEngine, DeckSession, DeckSessionRegistry

router = APIRouter(prefix="/groups/{group_id}/deck", tags=["deck"])


class FilterRequest(BaseModel):
    filter: DeckFilter


class SwipeRequest(BaseModel):
    direction: SwipeDirection


class DragEvent(BaseModel):
    phase: Literal["start", "move", "end"]
    x: float = 0.0


class MarkRequest(BaseModel):
    card_id: str
    is_known: bool = True


class MarkResponse(BaseModel):
    status: CardStatus
    deck: DeckSnapshot


async def _session(
    group_id: str,
    user: User = Depends(require_membership),
    engine: DeckEngine = Depends(get_deck_engine),
    sessions: DeckSessionRegistry = Depends(get_deck_sessions),
) -> DeckSession:
    return await sessions.get_or_create(engine, group_id, user.id)


@router.get("", response_model=DeckSnapshot)
async def get_deck(refresh: bool = False, session: DeckSession = Depends(_session)):
    if refresh:
        await session.refresh()
    return session.snapshot()


@router.post("/filter", response_model=DeckSnapshot)
async def set_filter(payload: FilterRequest, session: DeckSession = Depends(_session)):
    session.set_filter(payload.filter)
    return session.snapshot()


@router.post("/drag", response_model=DeckSnapshot)
async def drag(event: DragEvent, session: DeckSession = Depends(_session)):
    """Feed pointer input to the swipe gesture. A drag that ends past the threshold commits."""
    gesture = session.gesture
    if event.phase == "start":
        gesture.on_drag_start(event.x)
    elif event.phase == "move":
        gesture.on_drag_move(event.x)
    elif gesture.on_drag_end() is not None:
        await gesture.wait_settled()
    return session.snapshot()


@router.post("/swipe", response_model=DeckSnapshot)
async def swipe(payload: SwipeRequest, session: DeckSession = Depends(_session)):
    """Button press: same effect as dragging the card off-screen in that direction."""
    if not session.gesture.commit(payload.direction):
        raise HTTPException(status_code=409, detail="A swipe is already in progress.")
    await session.gesture.wait_settled()
    return session.snapshot()


@router.post("/tap", response_model=DeckSnapshot)
async def tap(session: DeckSession = Depends(_session)):
    session.gesture.tap()
    return session.snapshot()


@router.post("/mark", response_model=MarkResponse)
async def mark(payload: MarkRequest, session: DeckSession = Depends(_session)):
    status = await session.mark(payload.card_id, payload.is_known)
    if status is None:
        raise HTTPException(status_code=404, detail="Card is not in this deck.")
    return MarkResponse(status=status, deck=session.snapshot())


@router.post("/reset", response_model=DeckSnapshot)
async def reset(session: DeckSession = Depends(_session)):
    await session.reset()
    return session.snapshot()


@router.delete("", status_code=204)
async def close_deck(
    group_id: str,
    user: User = Depends(require_membership),
    sessions: DeckSessionRegistry = Depends(get_deck_sessions),
):
    sessions.close(user.id, group_id)
