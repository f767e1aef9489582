# childcare/models/user.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Persistent user profile for the childcare portal.

    Identity:
      - id: MUST match the Firebase Authentication uid

    Role:
      - "user" | "parent" | "admin"
      - invited admins get role "admin" at signup (see UserService.signup)

    Images:
      - ordered list of file names the user uploaded; each one maps to
        the blob "<id>/<file name>" in the image bucket.

    Firebase owns credentials; this table only mirrors identity, display
    name, application role and image ownership.
    """

    __tablename__ = "users"

    id: str = Field(
        primary_key=True,
        index=True,
        max_length=128,
        description="Matches Firebase Auth uid",
    )

    name: str = Field(
        max_length=100,
        description="Display name; Firebase displayName or email prefix by default",
    )

    email: str = Field(
        index=True,
        description="Email from Firebase Auth",
    )

    role: str = Field(
        default="user",
        index=True,
        description="Application role: user | parent | admin",
    )

    images: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="File names owned by this user (bounded quota)",
    )

    # Tombstone set by UserDeletionCoordinator until every dependent
    # store has been cleaned up.
    deletion_pending: bool = Field(default=False, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
