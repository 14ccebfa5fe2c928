from fastapi import Depends, Header, HTTPException

from knowme.models.user import User
from knowme.services.accounts import AccountService
from knowme.services.deck import DeckEngine, DeckSessionRegistry, deck_sessions
from knowme.services.groups import GroupService
from knowme.services.store import ProfileStore, profile_store


def get_store() -> ProfileStore:
    return profile_store


def get_deck_sessions() -> DeckSessionRegistry:
    return deck_sessions


def get_deck_engine(store: ProfileStore = Depends(get_store)) -> DeckEngine:
    return DeckEngine(store)


def get_group_service(store: ProfileStore = Depends(get_store)) -> GroupService:
    return GroupService(store)


def get_account_service(store: ProfileStore = Depends(get_store)) -> AccountService:
    return AccountService(store)


def bearer_token(authorization: str | None = Header(default=None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing token")
    return authorization.split(" ", 1)[1].strip()


async def get_current_user(
    token: str = Depends(bearer_token),
    accounts: AccountService = Depends(get_account_service),
) -> User:
    user = await accounts.current_user(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return user


async def require_premium(user: User = Depends(get_current_user)) -> User:
    if not user.is_premium:
        raise HTTPException(status_code=403, detail="This feature requires a premium account.")
    return user


async def require_membership(
    group_id: str,
    user: User = Depends(get_current_user),
    groups: GroupService = Depends(get_group_service),
) -> User:
    if await groups.get_group(group_id) is None:
        raise HTTPException(status_code=404, detail="Group not found.")
    if not await groups.is_member(group_id, user.id):
        raise HTTPException(status_code=403, detail="You are not a member of this group.")
    return user
