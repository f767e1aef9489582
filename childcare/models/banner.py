# childcare/models/banner.py
from datetime import datetime
from enum import Enum

from sqlmodel import SQLModel, Field


class BannerType(str, Enum):
    WEATHER = "weather"
    CLOSURE = "closure"
    CUSTOM = "custom"


class Banner(SQLModel):
    """
    Site-wide announcement shown above every page.

    Not persisted: the single live banner is held in memory by
    BannerLifecycleManager and disappears at `expires_at`.

    Rules (enforced by the manager on replace):
      - message is required when type == "custom"
      - now < expires_at <= now + 72h
    """

    type: BannerType
    message: str = ""
    expires_at: datetime = Field(description="Absolute, timezone-aware expiry")

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
