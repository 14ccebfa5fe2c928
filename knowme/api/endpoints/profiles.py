from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from knowme.api.deps import get_current_user, get_deck_engine, get_store
from knowme.core.exceptions import NotFound
from knowme.models.profile import ProfileCard, ProfileUpdate
from knowme.models.user import User
from knowme.services.deck import DeckEngine
from knowme.services.gemini import gemini_service
from knowme.services.profiles import ProfileService
from knowme.services.store import ProfileStore

router = APIRouter(prefix="/profiles", tags=["profiles"])


class BioRequest(BaseModel):
    bio: str = ""
    facts: str = ""


class BioResponse(BaseModel):
    bio: str


@router.get("/me", response_model=ProfileCard)
async def get_my_profile(user: User = Depends(get_current_user), store: ProfileStore = Depends(get_store)):
    profile = await ProfileService(store).get_for_user(user.id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found.")
    return profile


@router.put("/me", response_model=ProfileCard)
async def update_my_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    store: ProfileStore = Depends(get_store),
):
    try:
        return await ProfileService(store).update_own(user.id, payload)
    except NotFound:
        raise HTTPException(status_code=404, detail="Profile not found.")


@router.post("/me/enhance-bio", response_model=BioResponse)
async def enhance_bio(payload: BioRequest, user: User = Depends(get_current_user)):
    """Suggest a friendlier bio. Falls back to the submitted text when the AI call fails."""
    bio = await gemini_service.enhance_bio_async(payload.bio, user.name, payload.facts)
    return BioResponse(bio=bio)


@router.get("/known", response_model=list[ProfileCard])
async def my_network(user: User = Depends(get_current_user), engine: DeckEngine = Depends(get_deck_engine)):
    """Everyone the user has marked as known, across all their groups."""
    return await engine.all_known_cards(user.id)
