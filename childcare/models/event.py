# childcare/models/event.py
from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class Event(SQLModel, table=True):
    """
    Calendar event.

    References:
      - creator_id: id of the User who created the event; must resolve
        to an existing user when written.
      - invitee_ids: ordered, de-duplicated user ids.

    The row stores ids only. Full User objects are filled in at read
    time by EventService.
    """

    __tablename__ = "events"

    id: str = Field(
        primary_key=True,
        index=True,
        max_length=64,
    )

    name: str = Field(max_length=200, description="Event title")

    # Kept as the client sends them (e.g. "2025-05-01", "09:30")
    date: str = Field(default="", max_length=32)
    start_time: str = Field(default="", max_length=32)
    end_time: str = Field(default="", max_length=32)

    location: str = Field(default="", max_length=200)
    description: str = Field(default="")
    color: str = Field(default="", max_length=32, description="Calendar colour")

    creator_id: str = Field(
        index=True,
        description="Id of the creating user",
    )

    invitee_ids: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Ids of invited users",
    )
