# childcare/models/image.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


def blob_path(owner_id: str, file_name: str) -> str:
    """Blob key for an image: "<owner id>/<file name>"."""
    return f"{owner_id}/{file_name}"


def owner_prefix(owner_id: str) -> str:
    """Prefix shared by every blob a user owns."""
    return f"{owner_id}/"


class Image(SQLModel):
    """
    Metadata for an uploaded image.

    Identity is the (owner_id, name) pair; the bytes live in the blob
    store and `name` is also listed in the owner's `User.images`.
    """

    owner_id: str
    name: str
    url: str
    content_type: str
    size: int = Field(ge=0)
    uploaded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
