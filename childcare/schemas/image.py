# childcare/schemas/image.py
from sqlmodel import SQLModel

from childcare.models.image import Image


class SizeValidationResult(SQLModel):
    """
    Outcome of an image size check.

    When `valid` is False, ImageTooLargeError carries it into the 400
    body as `violation`.
    """

    valid: bool
    message: str
    size_limit: int
    file_size: int


class ImageUploadResponse(SQLModel):
    message: str
    image: Image
    images: list[str]


class ImageStatistics(SQLModel):
    total_images: int
    total_size: int
    average_size: float
    largest_image: int
    smallest_image: int


class ImageStatisticsRead(SQLModel):
    statistics: ImageStatistics
    size_limit: int


class ImageListRead(SQLModel):
    images: list[str]
