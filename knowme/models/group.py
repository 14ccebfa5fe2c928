from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_join_code(code: str) -> str:
    """Join codes are matched case-insensitively and stored upper-cased."""
    return (code or "").strip().upper()


class Group(BaseModel):
    id: str
    name: str
    description: str = ""
    created_by_user_id: str
    is_public: bool = False
    join_code: str
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class GroupUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    is_public: bool | None = None
    join_code: str | None = None


class Membership(BaseModel):
    id: str
    group_id: str
    user_id: str
    created_at: datetime = Field(default_factory=_now)


class Invitation(BaseModel):
    id: str
    group_id: str
    email: str
    invited_at: int  # epoch milliseconds
