import io
import unittest

from sqlmodel import Session

from support import FlakyBlobStore, add_user, make_engine

from childcare.core.errors import DependencyError, InvalidArgumentError, NotFoundError
from childcare.models.user import User
from childcare.repositories.user_repo import UserRepository
from childcare.services.image_service import ImageService, ImageTooLargeError, clean_file_name
from childcare.services.statistics_service import ImageStatisticsService


class CountingStream(io.BytesIO):
    """BytesIO that remembers how many bytes were handed out."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.bytes_read = 0

    def read(self, size=-1):
        chunk = super().read(size)
        self.bytes_read += len(chunk)
        return chunk


class ImageServiceTests(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.session = Session(self.engine)
        self.addCleanup(self.session.close)

        self.blobs = FlakyBlobStore()
        self.statistics = ImageStatisticsService(size_limit=1024)
        self.service = ImageService(UserRepository(), self.blobs, self.statistics)

        add_user(self.session, "paula")

    def images_of(self, user_id: str) -> list[str]:
        with Session(self.engine) as check:
            return check.get(User, user_id).images

    def test_upload_records_name_and_stores_blob(self):
        image, images = self.service.upload(self.session, "paula", "cat.png", "image/png", b"meow")

        self.assertEqual(image.name, "cat.png")
        self.assertEqual(image.size, 4)
        self.assertEqual(images, ["cat.png"])
        self.assertEqual(self.images_of("paula"), ["cat.png"])
        self.assertEqual(self.blobs.download("paula/cat.png"), (b"meow", "image/png"))
        self.assertEqual(self.statistics.get_statistics().total_images, 1)

    def test_fourth_image_is_rejected_and_list_unchanged(self):
        for name in ("1.png", "2.png", "3.png"):
            self.service.upload(self.session, "paula", name, "image/png", b"x")

        with self.assertRaises(InvalidArgumentError):
            self.service.upload(self.session, "paula", "4.png", "image/png", b"x")

        self.assertEqual(self.images_of("paula"), ["1.png", "2.png", "3.png"])
        self.assertNotIn("paula/4.png", self.blobs.list_all())

    def test_reupload_replaces_blob_without_using_quota(self):
        self.service.upload(self.session, "paula", "cat.png", "image/png", b"old")
        _, images = self.service.upload(self.session, "paula", "cat.png", "image/png", b"new")

        self.assertEqual(images, ["cat.png"])
        self.assertEqual(self.blobs.download("paula/cat.png")[0], b"new")

    def test_oversized_upload_returns_size_violation(self):
        with self.assertRaises(ImageTooLargeError) as ctx:
            self.service.upload(self.session, "paula", "big.png", "image/png", b"x" * 1025)

        result = ctx.exception.result
        self.assertFalse(result.valid)
        self.assertEqual(result.size_limit, 1024)
        self.assertEqual(result.file_size, 1025)
        self.assertEqual(ctx.exception.to_dict()["violation"]["file_size"], 1025)
        self.assertEqual(self.images_of("paula"), [])

    def test_oversized_stream_is_not_read_in_full(self):
        stream = CountingStream(b"x" * (1024 * 1024))

        with self.assertRaises(ImageTooLargeError) as ctx:
            self.service.read_upload(stream)

        self.assertEqual(stream.bytes_read, 1025)
        self.assertFalse(ctx.exception.result.valid)

    def test_declared_size_over_limit_is_rejected_before_reading(self):
        stream = CountingStream(b"x" * 5000)

        with self.assertRaises(ImageTooLargeError) as ctx:
            self.service.read_upload(stream, declared_size=5000)

        self.assertEqual(stream.bytes_read, 0)
        self.assertEqual(ctx.exception.result.file_size, 5000)

    def test_upload_within_limit_is_read_whole(self):
        self.assertEqual(self.service.read_upload(CountingStream(b"x" * 1024), 1024), b"x" * 1024)

    def test_non_image_is_rejected(self):
        for content_type in ("text/plain", None):
            with self.assertRaises(InvalidArgumentError):
                self.service.upload(self.session, "paula", "notes.txt", content_type, b"hi")

    def test_unknown_owner_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.service.upload(self.session, "ghost", "cat.png", "image/png", b"x")

    def test_file_name_is_reduced_to_base_name(self):
        image, _ = self.service.upload(self.session, "paula", "../../victor/cat.png", "image/png", b"x")

        self.assertEqual(image.name, "cat.png")
        self.assertEqual(self.blobs.list_all(), ["paula/cat.png"])
        self.assertEqual(clean_file_name("a\\b\\c.jpg"), "c.jpg")
        with self.assertRaises(InvalidArgumentError):
            clean_file_name("../")

    def test_download_requires_the_name_on_the_owner(self):
        self.blobs.upload("paula/stray.png", b"x", "image/png")
        with self.assertRaises(NotFoundError):
            self.service.download(self.session, "paula", "stray.png")

    def test_download_of_missing_blob_is_not_found(self):
        self.service.upload(self.session, "paula", "cat.png", "image/png", b"x")
        self.blobs.delete("paula/cat.png")

        with self.assertRaises(NotFoundError):
            self.service.download(self.session, "paula", "cat.png")

    def test_delete_removes_name_then_blob(self):
        self.service.upload(self.session, "paula", "cat.png", "image/png", b"x")
        self.service.upload(self.session, "paula", "dog.png", "image/png", b"y")

        remaining = self.service.delete(self.session, "paula", "cat.png")

        self.assertEqual(remaining, ["dog.png"])
        self.assertEqual(self.blobs.list_all(), ["paula/dog.png"])
        with self.assertRaises(NotFoundError):
            self.service.delete(self.session, "paula", "cat.png")

    def test_failed_blob_write_surfaces_as_dependency_error(self):
        self.blobs.fail_uploads = True

        with self.assertRaises(DependencyError) as ctx:
            self.service.upload(self.session, "paula", "cat.png", "image/png", b"x")

        self.assertEqual(ctx.exception.operation, "BlobStore.upload")
        # The record was updated before the blob write.
        self.assertEqual(self.images_of("paula"), ["cat.png"])


class ImageStatisticsServiceTests(unittest.TestCase):
    def test_size_limit_is_inclusive(self):
        stats = ImageStatisticsService(size_limit=100)
        self.assertTrue(stats.validate_image_size(100).valid)
        self.assertFalse(stats.validate_image_size(101).valid)

    def test_counters(self):
        stats = ImageStatisticsService()
        empty = stats.get_statistics()
        self.assertEqual((empty.total_images, empty.average_size), (0, 0.0))

        for size in (30, 10, 20):
            stats.track_uploaded_image(size)

        result = stats.get_statistics()
        self.assertEqual(result.total_images, 3)
        self.assertEqual(result.total_size, 60)
        self.assertEqual(result.average_size, 20.0)
        self.assertEqual(result.largest_image, 30)
        self.assertEqual(result.smallest_image, 10)


if __name__ == "__main__":
    unittest.main()
