from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from knowme.api.deps import get_current_user, get_deck_engine, get_group_service, require_membership, require_premium
from knowme.core.exceptions import DuplicateJoinCode, InvalidJoinCode, NotFound
from knowme.models.group import Group, GroupUpdate, Invitation
from knowme.models.profile import ProfileCard
from knowme.models.user import PublicUser, User
from knowme.services.deck import DeckEngine
from knowme.services.groups import GroupService

router = APIRouter(prefix="/groups", tags=["groups"])


class CreateGroupRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    join_code: str = Field(min_length=1)
    is_public: bool = False


class JoinRequest(BaseModel):
    code: str = Field(min_length=1, description="Join code, scanned QR payload or invite link")


class JoinResponse(BaseModel):
    group: Group
    joined: bool


class InviteRequest(BaseModel):
    emails: list[str]


class GroupDetail(BaseModel):
    group: Group
    join_link: str
    is_creator: bool
    member_count: int


@router.get("/", response_model=list[Group])
async def my_groups(user: User = Depends(get_current_user), groups: GroupService = Depends(get_group_service)):
    return await groups.groups_for_user(user.id)


@router.post("/", response_model=Group, status_code=201)
async def create_group(
    payload: CreateGroupRequest,
    user: User = Depends(require_premium),
    groups: GroupService = Depends(get_group_service),
):
    try:
        return await groups.create_group(user, payload.name, payload.description, payload.join_code, payload.is_public)
    except InvalidJoinCode:
        raise HTTPException(status_code=400, detail="Join code must not be blank.")
    except DuplicateJoinCode as exc:
        logger.info(f"Rejected group creation, join code {exc.join_code} is taken")
        raise HTTPException(status_code=409, detail="This join code is taken.")


@router.get("/search", response_model=list[Group])
async def search_groups(
    q: str = "",
    user: User = Depends(require_premium),
    groups: GroupService = Depends(get_group_service),
):
    return await groups.search_public(q)


@router.post("/join", response_model=JoinResponse)
async def join_group(
    payload: JoinRequest,
    user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service),
):
    try:
        group, joined = await groups.join_by_code(payload.code, user.id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Invalid Group or Code.")
    return JoinResponse(group=group, joined=joined)


@router.get("/{group_id}", response_model=GroupDetail)
async def get_group(
    group_id: str,
    user: User = Depends(require_membership),
    groups: GroupService = Depends(get_group_service),
):
    group = await groups.get_group(group_id)
    members = await groups.members(group_id)
    return GroupDetail(
        group=group,
        join_link=groups.join_link(group),
        is_creator=group.created_by_user_id == user.id,
        member_count=len(members),
    )


@router.patch("/{group_id}", response_model=Group)
async def update_group(
    group_id: str,
    payload: GroupUpdate,
    user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service),
):
    group = await groups.get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found.")
    if group.created_by_user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the group creator can edit it.")
    try:
        return await groups.update_group(group_id, payload)
    except InvalidJoinCode:
        raise HTTPException(status_code=400, detail="Join code must not be blank.")
    except NotFound:
        raise HTTPException(status_code=404, detail="Group not found.")
    except DuplicateJoinCode:
        raise HTTPException(status_code=409, detail="This join code is taken.")


@router.get("/{group_id}/members", response_model=list[PublicUser])
async def group_members(
    group_id: str,
    user: User = Depends(require_membership),
    groups: GroupService = Depends(get_group_service),
):
    return [PublicUser.from_user(member) for member in await groups.members(group_id)]


@router.post("/{group_id}/invitations", response_model=list[Invitation], status_code=201)
async def invite_members(
    group_id: str,
    payload: InviteRequest,
    user: User = Depends(require_membership),
    groups: GroupService = Depends(get_group_service),
):
    return await groups.invite(group_id, payload.emails)


@router.get("/{group_id}/known", response_model=list[ProfileCard])
async def known_people(
    group_id: str,
    user: User = Depends(require_membership),
    engine: DeckEngine = Depends(get_deck_engine),
):
    return await engine.known_cards(group_id, user.id)
