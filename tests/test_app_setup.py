import unittest

from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from support import FakeIdentity, FakeMailer, make_settings

from childcare.core.errors import (
    ConflictError,
    DependencyError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    UnauthorizedError,
    store_call,
)
from childcare.database import _with_sslmode
from childcare.main import create_app
from childcare.repositories.blob_repo import InMemoryBlobStore


class ErrorKindTests(unittest.TestCase):
    def test_each_kind_maps_to_its_status(self):
        cases = [
            (InvalidArgumentError("bad"), 400),
            (UnauthorizedError("who?"), 401),
            (ForbiddenError("no"), 403),
            (NotFoundError("gone"), 404),
            (ConflictError("taken"), 409),
            (DependencyError("UserRepository.get_by_id"), 500),
        ]
        for error, status_code in cases:
            self.assertEqual(error.status_code, status_code)
            self.assertEqual(error.to_dict()["status"], status_code)

    def test_store_call_wraps_store_failures(self):
        with self.assertRaises(DependencyError) as ctx:
            with store_call("EventRepository.list"):
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        self.assertEqual(ctx.exception.operation, "EventRepository.list")
        self.assertIn("EventRepository.list failed", ctx.exception.message)

    def test_store_call_lets_service_errors_through(self):
        with self.assertRaises(NotFoundError):
            with store_call("UserRepository.get_by_id"):
                raise NotFoundError("User x not found")


class SettingsTests(unittest.TestCase):
    def test_limits_must_be_positive(self):
        with self.assertRaises(ValidationError):
            make_settings(MAX_USER_IMAGES=0)
        with self.assertRaises(ValidationError):
            make_settings(DELETION_SWEEP_INTERVAL_SECONDS=-1)

    def test_legacy_environment_is_refused(self):
        with self.assertRaises(RuntimeError):
            create_app(
                settings=make_settings(APP_ENV="legacy"),
                blob_store=InMemoryBlobStore(),
                identity=FakeIdentity(),
                mailer=FakeMailer(),
            )

    def test_production_requires_supabase(self):
        with self.assertRaises(RuntimeError):
            create_app(
                settings=make_settings(APP_ENV="production"),
                identity=FakeIdentity(),
                mailer=FakeMailer(),
            )

    def test_postgres_urls_get_sslmode(self):
        self.assertEqual(
            _with_sslmode("postgresql://u:p@db/app"),
            "postgresql://u:p@db/app?sslmode=require",
        )
        self.assertEqual(
            _with_sslmode("postgresql://u:p@db/app?application_name=x"),
            "postgresql://u:p@db/app?application_name=x&sslmode=require",
        )
        self.assertEqual(
            _with_sslmode("postgresql://u:p@db/app?sslmode=disable"),
            "postgresql://u:p@db/app?sslmode=disable",
        )


if __name__ == "__main__":
    unittest.main()
