"""Fakes and builders shared by the test modules."""

import dataclasses
import smtplib
from datetime import datetime, timezone

from fastapi.testclient import TestClient
from sqlmodel import Session

from childcare.core.config import Settings
from childcare.core.errors import BlobStoreError, UnauthorizedError
from childcare.core.firebase import Identity, Invitation
from childcare.database import create_db_and_tables, create_engine_from_settings
from childcare.main import create_app
from childcare.models.user import User
from childcare.repositories.blob_repo import InMemoryBlobStore


def make_settings(**overrides) -> Settings:
    values = {"DATABASE_URL": "sqlite://", "APP_ENV": "development"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_engine(settings: Settings | None = None):
    engine = create_engine_from_settings(settings or make_settings())
    create_db_and_tables(engine)
    return engine


def add_user(session: Session, user_id: str, **fields) -> User:
    fields.setdefault("name", user_id.title())
    fields.setdefault("email", f"{user_id}@example.com")
    user = User(id=user_id, **fields)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


class FakeClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class FakeIdentity:
    """In-memory stand-in for Firebase Auth + the invitedUsers collection."""

    def __init__(self):
        self.tokens: dict[str, Identity] = {}
        self.names: dict[str, str] = {}
        self.invitations: dict[str, Invitation] = {}
        self.admin_claims: set[str] = set()

    def login(self, uid: str, email: str | None = None, admin: bool = False, name: str | None = None) -> dict:
        """Register a user and return the Authorization header for them."""
        token = f"token-{uid}"
        self.tokens[token] = Identity(uid=uid, email=email or f"{uid}@example.com", admin=admin)
        if name:
            self.names[uid] = name
        return {"Authorization": f"Bearer {token}"}

    def verify_token(self, token: str) -> Identity:
        if token not in self.tokens:
            raise UnauthorizedError("Invalid token")
        return self.tokens[token]

    def display_name(self, uid: str) -> str | None:
        return self.names.get(uid)

    def get_invitation(self, email: str) -> Invitation | None:
        return self.invitations.get(email)

    def record_invitation(self, email: str, admin: bool = False) -> None:
        self.invitations[email] = Invitation(email=email, invited=True, admin=admin)

    def mark_signed_up(self, email: str) -> None:
        self.invitations[email] = dataclasses.replace(self.invitations[email], signed_up=True)

    def set_admin_claim_for_email(self, email: str) -> bool:
        invitation = self.invitations.get(email)
        if invitation is None or not invitation.grants_admin:
            return False
        self.admin_claims.add(email)
        return True

    def sync_admin_claims(self) -> int:
        return sum(self.set_admin_claim_for_email(email) for email in list(self.invitations))


class FakeMailer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def send_email(self, to_email, subject, text_body, html_body=None) -> None:
        if self.fail:
            raise smtplib.SMTPServerDisconnected("connection closed")
        self.sent.append({"to": to_email, "subject": subject, "text": text_body})


class FlakyBlobStore(InMemoryBlobStore):
    """InMemoryBlobStore whose writes can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_uploads = False
        self.fail_owner_deletes = False

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        if self.fail_uploads:
            raise BlobStoreError(f"upload {path!r}: service unavailable")
        return super().upload(path, data, content_type)

    def delete_all_for_owner(self, owner_id: str) -> int:
        if self.fail_owner_deletes:
            raise BlobStoreError(f"delete_all_for_owner {owner_id!r}: service unavailable")
        return super().delete_all_for_owner(owner_id)


class ApiTestMixin:
    """Builds an app with fakes and a started TestClient for each test."""

    settings_overrides: dict = {}

    def setUp(self):
        self.settings = make_settings(**self.settings_overrides)
        self.identity = FakeIdentity()
        self.mailer = FakeMailer()
        self.blobs = FlakyBlobStore()
        self.app = create_app(
            settings=self.settings,
            engine=create_engine_from_settings(self.settings),
            blob_store=self.blobs,
            identity=self.identity,
            mailer=self.mailer,
        )
        self.client = TestClient(self.app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)

        self.admin = self.identity.login("admin", admin=True)

    def signup(self, uid: str, **kwargs) -> dict:
        headers = self.identity.login(uid, **kwargs)
        response = self.client.post("/api/users", headers=headers)
        assert response.status_code == 201, response.text
        return headers
