# childcare/services/image_service.py
import logging
from pathlib import PurePosixPath
from typing import BinaryIO

from sqlmodel import Session

from childcare.core.errors import (
    BlobNotFoundError,
    InvalidArgumentError,
    NotFoundError,
    store_call,
)
from childcare.models.image import Image, blob_path
from childcare.models.user import User
from childcare.repositories.blob_repo import BlobStore
from childcare.repositories.user_repo import UserRepository
from childcare.schemas.image import SizeValidationResult
from childcare.services.statistics_service import ImageStatisticsService

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGES = 3


class ImageTooLargeError(InvalidArgumentError):
    """Upload rejected by the size policy; carries the validation result."""

    def __init__(self, result: SizeValidationResult):
        super().__init__(
            result.message,
            [{"field": "image", "message": result.message}],
        )
        self.result = result

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["violation"] = self.result.model_dump()
        return payload


def clean_file_name(file_name: str | None) -> str:
    """
    Reduce a client-supplied file name to its base name.

    Raises:
        InvalidArgumentError: if nothing usable is left.
    """
    name = PurePosixPath((file_name or "").replace("\\", "/")).name.strip()
    if name in ("", ".", ".."):
        raise InvalidArgumentError(
            "Invalid file name",
            [{"field": "file_name", "message": "is required"}],
        )
    return name


class ImageService:
    """
    Keeps a user's `images` list and the image bucket in step.

    There is no transaction across the two stores: the file name is
    recorded on the user first, then the blob is written. A failed blob
    write after the record update surfaces as DependencyError and leaves
    the name listed without bytes behind it.
    """

    def __init__(
        self,
        user_repo: UserRepository,
        blob_store: BlobStore,
        statistics: ImageStatisticsService,
        max_images: int = DEFAULT_MAX_IMAGES,
    ):
        self.users = user_repo
        self.blobs = blob_store
        self.statistics = statistics
        self.max_images = max_images

    def upload(
        self,
        session: Session,
        owner_id: str,
        file_name: str | None,
        content_type: str | None,
        data: bytes,
    ) -> tuple[Image, list[str]]:
        """
        Store an image for `owner_id`.

        Re-uploading a name the user already owns replaces the blob and
        does not count against the quota.

        Returns:
            (image metadata, the owner's updated image list)

        Raises:
            InvalidArgumentError: not an image, bad name or quota exceeded.
            ImageTooLargeError: size over the limit.
            NotFoundError: owner does not exist.
        """
        if not content_type or not content_type.startswith("image/"):
            raise InvalidArgumentError(
                "File is not an image",
                [{"field": "image", "message": "content type must be image/*"}],
            )
        name = clean_file_name(file_name)

        self._check_size(len(data))

        user = self._get_owner(session, owner_id)
        if name not in user.images:
            if len(user.images) >= self.max_images:
                raise InvalidArgumentError(
                    "Image quota exceeded",
                    [
                        {
                            "field": "images",
                            "message": f"a user can own at most {self.max_images} images",
                        }
                    ],
                )
            user.images = [*user.images, name]
            with store_call("UserRepository.update"):
                user = self.users.update(session, user)

        with store_call("BlobStore.upload"):
            url = self.blobs.upload(blob_path(owner_id, name), data, content_type)

        self.statistics.track_uploaded_image(len(data))
        logger.info("Image %s uploaded for %s (%d bytes)", name, owner_id, len(data))

        image = Image(
            owner_id=owner_id,
            name=name,
            url=url,
            content_type=content_type,
            size=len(data),
        )
        return image, list(user.images)

    def read_upload(self, stream: BinaryIO, declared_size: int | None = None) -> bytes:
        """
        Read an upload body, stopping one byte past the size limit.

        A declared size over the limit is rejected before anything is
        read. Otherwise at most `size_limit + 1` bytes are pulled from
        the stream, so an oversized body is never buffered in full.

        Raises:
            ImageTooLargeError: the body is over the limit.
        """
        if declared_size is not None:
            self._check_size(declared_size)
        data = stream.read(self.statistics.size_limit + 1)
        self._check_size(len(data))
        return data

    def download(self, session: Session, owner_id: str, file_name: str) -> tuple[bytes, str]:
        """
        Raises:
            NotFoundError: the owner does not list the file or its blob is gone.
        """
        name = clean_file_name(file_name)
        user = self._get_owner(session, owner_id)
        if name not in user.images:
            raise NotFoundError(f"Image {name} not found")

        with store_call("BlobStore.download"):
            try:
                return self.blobs.download(blob_path(owner_id, name))
            except BlobNotFoundError:
                raise NotFoundError(f"Image {name} not found")

    def delete(self, session: Session, owner_id: str, file_name: str) -> list[str]:
        """
        Remove the name from the owner's record, then delete the blob.

        Returns:
            The owner's remaining image list.
        """
        name = clean_file_name(file_name)
        user = self._get_owner(session, owner_id)
        if name not in user.images:
            raise NotFoundError(f"Image {name} not found")

        user.images = [i for i in user.images if i != name]
        with store_call("UserRepository.update"):
            user = self.users.update(session, user)

        with store_call("BlobStore.delete"):
            try:
                self.blobs.delete(blob_path(owner_id, name))
            except BlobNotFoundError:
                logger.warning("Blob for %s/%s was already gone", owner_id, name)

        logger.info("Image %s deleted for %s", name, owner_id)
        return list(user.images)

    def list_all(self) -> list[str]:
        with store_call("BlobStore.list_all"):
            return self.blobs.list_all()

    def _check_size(self, size: int) -> None:
        size_check = self.statistics.validate_image_size(size)
        if not size_check.valid:
            raise ImageTooLargeError(size_check)

    def _get_owner(self, session: Session, owner_id: str) -> User:
        with store_call("UserRepository.get_by_id"):
            user = self.users.get_by_id(session, owner_id)
        if user is None or user.deletion_pending:
            raise NotFoundError(f"User {owner_id} not found")
        return user
