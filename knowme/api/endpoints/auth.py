from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from knowme.api.deps import bearer_token, get_account_service, get_current_user
from knowme.core.exceptions import DuplicateKey, InvalidCredentials
from knowme.models.user import PublicUser, User, UserTier
from knowme.services.accounts import AccountService

router = APIRouter(prefix="/auth", tags=["auth"])


class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    tier: UserTier = UserTier.STANDARD


class LoginRequest(BaseModel):
    email: str
    password: str


class PasswordChange(BaseModel):
    password: str = Field(min_length=1)


class AccountUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    avatar_url: str | None = None


class AuthResponse(BaseModel):
    token: str
    user: PublicUser


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(payload: SignupRequest, accounts: AccountService = Depends(get_account_service)):
    try:
        user = await accounts.signup(payload.name, payload.email, payload.password, payload.tier)
    except DuplicateKey:
        raise HTTPException(status_code=409, detail="Email already registered.")
    token = await accounts.open_session(user)
    return AuthResponse(token=token, user=PublicUser.from_user(user))


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, accounts: AccountService = Depends(get_account_service)):
    try:
        user, token = await accounts.login(payload.email, payload.password)
    except InvalidCredentials:
        logger.info("Rejected login with invalid credentials")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return AuthResponse(token=token, user=PublicUser.from_user(user))


@router.post("/logout", status_code=200)
async def logout(token: str = Depends(bearer_token), accounts: AccountService = Depends(get_account_service)):
    await accounts.logout(token)
    return {"detail": "Logged out"}


@router.get("/me", response_model=PublicUser)
async def me(user: User = Depends(get_current_user)):
    return PublicUser.from_user(user)


@router.patch("/me", response_model=PublicUser)
async def update_me(
    payload: AccountUpdate,
    user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    """Edit the account name or avatar. Tier changes are not self-service."""
    updated = await accounts.update_user(user.id, name=payload.name, avatar_url=payload.avatar_url)
    return PublicUser.from_user(updated)


@router.put("/password", status_code=200)
async def change_password(
    payload: PasswordChange,
    user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.change_password(user, payload.password)
    return {"detail": "Password updated"}
