from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class UserTier(str, Enum):
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


class User(BaseModel):
    id: str
    name: str
    email: str
    tier: UserTier = UserTier.STANDARD
    avatar_url: str | None = None
    password_hash: str | None = Field(default=None, exclude=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_premium(self) -> bool:
        return self.tier == UserTier.PREMIUM


class PublicUser(BaseModel):
    """User fields safe to show to other members."""

    id: str
    name: str
    email: str
    tier: UserTier
    avatar_url: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(id=user.id, name=user.name, email=user.email, tier=user.tier, avatar_url=user.avatar_url)
