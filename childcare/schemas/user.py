# childcare/schemas/user.py
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

# App-level roles. Anonymous callers have no row.
Role = Literal["user", "parent", "admin"]


def _normalize_name(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("name cannot be empty")
    return v


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: str
    name: str
    email: str
    role: str
    images: list[str]
    created_at: datetime


class UserSignup(SQLModel):
    """
    Optional payload for POST /users.

    uid and email always come from the verified token; `name` overrides
    the Firebase display name.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        return _normalize_name(v)


class UserUpdate(SQLModel):
    """
    Partial update (PUT /users/{id}).

    Rules (enforced by UserService):
      - `role` may only be changed by an admin
      - `images` holds at most MAX_USER_IMAGES file names
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    role: Role | None = None
    images: list[str] | None = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        return _normalize_name(v)


class DeletionStatusRead(SQLModel):
    """Progress of a user deletion."""

    user_id: str
    status: Literal["active", "pending"]


class SweepResult(SQLModel):
    """Outcome of one pass over tombstoned users."""

    processed: int = 0
    completed: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
