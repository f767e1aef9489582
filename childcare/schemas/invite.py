# childcare/schemas/invite.py
from pydantic import EmailStr, ConfigDict
from sqlmodel import SQLModel


class InviteCreate(SQLModel):
    """Payload for POST /invites (admin only)."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    admin: bool = False


class InviteRead(SQLModel):
    email: str
    admin: bool
    message: str
