# childcare/schemas/event.py
from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from childcare.schemas.user import UserRead


def _dedupe(ids: list[str]) -> list[str]:
    """Collapse duplicate ids, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            out.append(i)
    return out


class EventBase(SQLModel):
    """Fields shared by event create and read models."""

    name: str = Field(min_length=1, max_length=200)
    date: str = Field(default="", max_length=32)
    start_time: str = Field(default="", max_length=32)
    end_time: str = Field(default="", max_length=32)
    location: str = Field(default="", max_length=200)
    description: str = ""
    color: str = Field(default="", max_length=32)


class EventCreate(EventBase):
    """
    Payload for POST /events.

    The creator is always the caller. `id` may be chosen by the client
    (the calendar UI generates its own); a random id is used otherwise.
    """

    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(default=None, min_length=1, max_length=64)
    invitee_ids: list[str] = Field(default_factory=list)

    @field_validator("invitee_ids")
    @classmethod
    def unique_invitees(cls, v: list[str]) -> list[str]:
        return _dedupe(v)


class EventUpdate(SQLModel):
    """
    Partial update (PUT /events/{id}).
    Only provided fields are changed; the creator cannot be reassigned.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=200)
    date: str | None = Field(default=None, max_length=32)
    start_time: str | None = Field(default=None, max_length=32)
    end_time: str | None = Field(default=None, max_length=32)
    location: str | None = Field(default=None, max_length=200)
    description: str | None = None
    color: str | None = Field(default=None, max_length=32)
    invitee_ids: list[str] | None = None

    @field_validator("invitee_ids")
    @classmethod
    def unique_invitees(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return _dedupe(v)


class EventRead(EventBase):
    """
    Event as returned to clients, with creator and invitees expanded
    into full user objects.
    """

    id: str
    creator: UserRead
    invitees: list[UserRead] = Field(default_factory=list)
