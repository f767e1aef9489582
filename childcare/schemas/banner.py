# childcare/schemas/banner.py
from datetime import datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel

from childcare.models.banner import Banner, BannerType


class BannerWrite(SQLModel):
    """
    Payload for POST /banner.

    `type` is kept as a plain string here: the allowed values and the
    expiry window are checked by BannerLifecycleManager so every policy
    violation is reported together.

    `expires_at` must be ISO 8601 with an offset, e.g.
    "2025-05-01T18:00:00Z".
    """

    model_config = ConfigDict(extra="forbid")

    type: str
    message: str | None = None
    expires_at: datetime


class BannerRead(SQLModel):
    """Banner as returned to clients."""

    type: BannerType
    message: str
    expires_at: datetime

    @classmethod
    def from_banner(cls, banner: Banner) -> "BannerRead":
        return cls(type=banner.type, message=banner.message, expires_at=banner.expires_at)


class BannerTimerRead(SQLModel):
    timer_running: bool
