# childcare/core/firebase.py
"""
Firebase Admin SDK integration.

Responsibilities:
  - verify Firebase ID tokens sent as `Authorization: Bearer <token>`
  - read the `invitedUsers/{email}` invitation records in Firestore
  - propagate the `admin` custom claim to invited administrators

The Firebase app is created explicitly by `FirebaseIdentityProvider`
(once per FastAPI app, see main.create_app) and passed to every SDK
call, so nothing depends on the SDK's implicit default app.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Protocol

import firebase_admin
from firebase_admin import auth, credentials, firestore

from childcare.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)

INVITATIONS_COLLECTION = "invitedUsers"


@dataclass(frozen=True)
class Identity:
    """Caller identity extracted from a verified ID token."""

    uid: str
    email: str
    admin: bool = False


@dataclass(frozen=True)
class Invitation:
    """An `invitedUsers/{email}` record."""

    email: str
    invited: bool = False
    signed_up: bool = False
    admin: bool = False
    role: str = "parent"

    @property
    def grants_admin(self) -> bool:
        """Admin claim is granted once an invited admin has signed up."""
        return self.admin and self.signed_up


class IdentityProvider(Protocol):
    """What the services need from the identity platform."""

    def verify_token(self, token: str) -> Identity:
        ...

    def display_name(self, uid: str) -> str | None:
        ...

    def get_invitation(self, email: str) -> Invitation | None:
        ...

    def record_invitation(self, email: str, admin: bool = False) -> None:
        ...

    def mark_signed_up(self, email: str) -> None:
        ...

    def set_admin_claim_for_email(self, email: str) -> bool:
        ...

    def sync_admin_claims(self) -> int:
        ...


def _invitation_from_dict(email: str, data: dict[str, Any]) -> Invitation:
    return Invitation(
        email=email,
        invited=bool(data.get("invited", False)),
        signed_up=bool(data.get("signedUp", False)),
        admin=bool(data.get("admin", False)),
        role=str(data.get("role", "parent")),
    )


class FirebaseIdentityProvider:
    """
    IdentityProvider backed by Firebase Auth + Firestore.

    Args:
        service_account_json: raw service account JSON
            (FIREBASE_SERVICE_ACCOUNT_JSON).
        app_name: name for the firebase_admin App; unique per instance
            by default so several FastAPI apps can coexist in a process.
    """

    def __init__(self, service_account_json: str, app_name: str | None = None):
        if not service_account_json:
            raise RuntimeError("FIREBASE_SERVICE_ACCOUNT_JSON is not set")
        try:
            info = json.loads(service_account_json)
        except json.JSONDecodeError as exc:
            raise RuntimeError("FIREBASE_SERVICE_ACCOUNT_JSON is not valid JSON") from exc

        cred = credentials.Certificate(info)
        self.app = firebase_admin.initialize_app(
            cred,
            name=app_name or f"childcare-{uuid.uuid4().hex[:8]}",
        )
        self._firestore = None

    @property
    def db(self):
        if self._firestore is None:
            self._firestore = firestore.client(app=self.app)
        return self._firestore

    def close(self) -> None:
        """Release the Firebase app (application shutdown)."""
        firebase_admin.delete_app(self.app)

    # ----- Tokens -----

    def verify_token(self, token: str) -> Identity:
        """
        Verify a Firebase ID token.

        Raises:
            UnauthorizedError: if the token is invalid, expired, revoked
                or carries no email.
        """
        try:
            claims = auth.verify_id_token(token, app=self.app)
        except (auth.InvalidIdTokenError, auth.CertificateFetchError, ValueError) as exc:
            logger.info("Rejected ID token: %s", exc)
            raise UnauthorizedError(
                "Your session is invalid or has expired. Please sign in again."
            ) from exc

        uid = claims.get("uid") or claims.get("sub")
        email = claims.get("email")
        if not uid or not email:
            raise UnauthorizedError("Token missing uid/email")

        return Identity(uid=uid, email=email, admin=bool(claims.get("admin", False)))

    def display_name(self, uid: str) -> str | None:
        record = auth.get_user(uid, app=self.app)
        return record.display_name

    # ----- Invitations -----

    def get_invitation(self, email: str) -> Invitation | None:
        snapshot = self.db.collection(INVITATIONS_COLLECTION).document(email).get()
        if not snapshot.exists:
            return None
        return _invitation_from_dict(email, snapshot.to_dict() or {})

    def record_invitation(self, email: str, admin: bool = False) -> None:
        self.db.collection(INVITATIONS_COLLECTION).document(email).set(
            {
                "invited": True,
                "signedUp": False,
                "role": "parent",
                "admin": admin,
            }
        )

    def mark_signed_up(self, email: str) -> None:
        self.db.collection(INVITATIONS_COLLECTION).document(email).update(
            {"signedUp": True}
        )

    # ----- Admin claims -----

    def set_admin_claim_for_email(self, email: str) -> bool:
        """
        Grant the `admin` custom claim if the invitation allows it.

        Returns:
            True if the claim was set, False if the invitation is missing
            or not (yet) eligible.
        """
        invitation = self.get_invitation(email)
        if invitation is None:
            logger.info("No invitedUsers record found for %s", email)
            return False
        if not invitation.grants_admin:
            logger.info(
                "Skipping claim for %s: admin=%s, signedUp=%s",
                email,
                invitation.admin,
                invitation.signed_up,
            )
            return False

        user = auth.get_user_by_email(email, app=self.app)
        auth.set_custom_user_claims(user.uid, {"admin": True}, app=self.app)
        logger.info("✅ Admin claim set for: %s", email)
        return True

    def sync_admin_claims(self) -> int:
        """
        Walk every invitation and grant the admin claim where eligible.

        Users missing from Firebase Auth are logged and skipped.

        Returns:
            Number of claims set.
        """
        granted = 0
        for doc in self.db.collection(INVITATIONS_COLLECTION).stream():
            invitation = _invitation_from_dict(doc.id, doc.to_dict() or {})
            if not invitation.grants_admin:
                continue
            try:
                user = auth.get_user_by_email(invitation.email, app=self.app)
            except auth.UserNotFoundError:
                logger.warning("Could not find Firebase user %s", invitation.email)
                continue
            auth.set_custom_user_claims(user.uid, {"admin": True}, app=self.app)
            logger.info("Admin claim set for user: %s", invitation.email)
            granted += 1
        return granted
