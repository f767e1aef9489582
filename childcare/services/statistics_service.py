# childcare/services/statistics_service.py
import threading

from childcare.schemas.image import ImageStatistics, SizeValidationResult

# Maximum upload size: 10 MiB
DEFAULT_SIZE_LIMIT = 10 * 1024 * 1024


class ImageStatisticsService:
    """
    Upload size policy plus running counters over accepted uploads.

    Counters live in process memory and restart from zero with the
    process; they describe uploads, not the bucket's contents.
    """

    def __init__(self, size_limit: int = DEFAULT_SIZE_LIMIT):
        self.size_limit = size_limit
        self._lock = threading.Lock()
        self._total_images = 0
        self._total_size = 0
        self._largest = 0
        self._smallest = 0

    def validate_image_size(self, size: int) -> SizeValidationResult:
        if size > self.size_limit:
            return SizeValidationResult(
                valid=False,
                message="Image size exceeds the maximum allowed limit",
                size_limit=self.size_limit,
                file_size=size,
            )
        return SizeValidationResult(
            valid=True,
            message="Image size is within the allowed limit",
            size_limit=self.size_limit,
            file_size=size,
        )

    def track_uploaded_image(self, size: int) -> None:
        with self._lock:
            self._total_images += 1
            self._total_size += size
            if self._total_images == 1 or size < self._smallest:
                self._smallest = size
            if self._total_images == 1 or size > self._largest:
                self._largest = size

    def get_statistics(self) -> ImageStatistics:
        with self._lock:
            average = self._total_size / self._total_images if self._total_images else 0.0
            return ImageStatistics(
                total_images=self._total_images,
                total_size=self._total_size,
                average_size=average,
                largest_image=self._largest,
                smallest_image=self._smallest,
            )
