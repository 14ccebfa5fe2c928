from fastapi import APIRouter, Depends
from pydantic import BaseModel

from knowme.api.deps import get_current_user, get_store, require_membership
from knowme.models.deck import GlobalRanking, GroupRanking
from knowme.models.user import User
from knowme.services.ranking import RankingEngine
from knowme.services.store import ProfileStore

router = APIRouter(tags=["ranking"])


class GroupProgress(BaseModel):
    progress: int
    ranking: GroupRanking


@router.get("/groups/{group_id}/ranking", response_model=GroupProgress)
async def group_ranking(
    group_id: str,
    user: User = Depends(require_membership),
    store: ProfileStore = Depends(get_store),
):
    engine = RankingEngine(store)
    return GroupProgress(
        progress=await engine.group_progress(group_id, user.id),
        ranking=await engine.group_ranking(group_id, user.id),
    )


@router.get("/ranking/global", response_model=GlobalRanking)
async def global_ranking(user: User = Depends(get_current_user), store: ProfileStore = Depends(get_store)):
    return await RankingEngine(store).global_ranking(user.id)
