# childcare/services/user_service.py
import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from childcare.core.errors import (
    STORE_ERRORS,
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    store_call,
)
from childcare.core.firebase import Identity, IdentityProvider, Invitation
from childcare.models.user import User
from childcare.repositories.user_repo import UserRepository
from childcare.schemas.user import UserSignup, UserUpdate
from childcare.services.user_deletion import UserDeletionCoordinator

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGES = 3


def default_name_from_email(email: str) -> str:
    """
    Derive a display name from email when Firebase has none.
    """
    if "@" in email:
        return email.split("@", 1)[0]
    return email


class UserService:
    """
    Business logic for User.

    Responsibilities:
      - create profiles from a verified Firebase identity
      - apply invitation records (admin role + admin claim)
      - enforce app rules (image quota, who may change roles)
      - hand deletion to UserDeletionCoordinator
    """

    def __init__(
        self,
        repo: UserRepository,
        identity: IdentityProvider,
        deletion: UserDeletionCoordinator,
        max_images: int = DEFAULT_MAX_IMAGES,
    ):
        self.repo = repo
        self.identity = identity
        self.deletion = deletion
        self.max_images = max_images

    # ----- Signup -----

    def signup(
        self,
        session: Session,
        caller: Identity,
        payload: UserSignup | None = None,
    ) -> User:
        """
        Create the profile for the authenticated Firebase user.

        Rules:
          - id and email come from the token, never from the body
          - an invitation with admin=true gives role "admin", marks the
            invitation signed up and then sets the admin claim
          - invitation bookkeeping failures are logged, not fatal

        Raises:
            ConflictError: if a profile already exists for this uid.
        """
        self._ensure_absent(session, caller.uid)

        name = (payload.name if payload else None) or self._display_name(caller)
        invitation = self._invitation(caller.email)
        is_admin = invitation is not None and invitation.admin

        user = User(
            id=caller.uid,
            name=name,
            email=caller.email,
            role="admin" if is_admin else "user",
        )
        user = self._insert(session, user)
        logger.info("User %s signed up (role=%s)", user.id, user.role)

        if invitation is not None:
            self._complete_invitation(caller.email, is_admin)
        return user

    def sync(self, session: Session, caller: Identity, payload: UserSignup | None = None) -> tuple[User, bool]:
        """
        Make sure the Firebase user has a profile. Idempotent.

        Returns:
            (user, created): created is False if the profile already existed.
        """
        with store_call("UserRepository.get_by_id"):
            existing = self.repo.get_by_id(session, caller.uid)
        if existing is not None and not existing.deletion_pending:
            return existing, False

        self._ensure_absent(session, caller.uid)
        name = (payload.name if payload else None) or self._display_name(caller)
        user = User(id=caller.uid, name=name, email=caller.email, role="parent")
        user = self._insert(session, user)
        logger.info("User %s synced from Firebase", user.id)
        return user, True

    # ----- Reads -----

    def list_users(self, session: Session, skip: int = 0, limit: int = 50) -> list[User]:
        with store_call("UserRepository.list"):
            return self.repo.list(session, skip=skip, limit=limit)

    def get_user(self, session: Session, user_id: str) -> User:
        """
        Get a live user by id.

        Raises:
            NotFoundError: if missing or being deleted.
        """
        with store_call("UserRepository.get_by_id"):
            user = self.repo.get_by_id(session, user_id)
        if user is None or user.deletion_pending:
            raise NotFoundError(f"User {user_id} not found")
        return user

    # ----- Writes -----

    def update_user(
        self,
        session: Session,
        user_id: str,
        payload: UserUpdate,
        caller_is_admin: bool = False,
    ) -> User:
        """
        Partial update; only fields present in the payload change.

        Raises:
            NotFoundError: unknown user.
            ForbiddenError: non-admin tries to change a role.
            InvalidArgumentError: more than `max_images` image names.
        """
        user = self.get_user(session, user_id)

        if payload.role is not None and payload.role != user.role and not caller_is_admin:
            raise ForbiddenError("Only admins can change roles")

        if payload.images is not None and len(payload.images) > self.max_images:
            raise InvalidArgumentError(
                "Image quota exceeded",
                [
                    {
                        "field": "images",
                        "message": f"a user can own at most {self.max_images} images",
                    }
                ],
            )

        if payload.name is not None:
            user.name = payload.name
        if payload.email is not None:
            user.email = str(payload.email)
        if payload.role is not None:
            user.role = payload.role
        if payload.images is not None:
            user.images = list(payload.images)

        with store_call("UserRepository.update"):
            return self.repo.update(session, user)

    def delete_user(self, session: Session, user_id: str) -> None:
        """Delete the user and everything that references them."""
        self.deletion.delete_user(session, user_id)

    # ----- Internals -----

    def _ensure_absent(self, session: Session, user_id: str) -> None:
        with store_call("UserRepository.get_by_id"):
            existing = self.repo.get_by_id(session, user_id)
        if existing is None:
            return
        if existing.deletion_pending:
            raise ConflictError(f"User {user_id} is being deleted")
        raise ConflictError(f"User {user_id} already exists")

    def _insert(self, session: Session, user: User) -> User:
        user_id = user.id
        with store_call("UserRepository.create"):
            try:
                return self.repo.create(session, user)
            except IntegrityError:
                # A concurrent signup or sync inserted the same uid first.
                session.rollback()
                raise ConflictError(f"User {user_id} already exists")

    def _display_name(self, caller: Identity) -> str:
        try:
            name = self.identity.display_name(caller.uid)
        except STORE_ERRORS as exc:
            logger.warning("Could not read display name for %s: %s", caller.uid, exc)
            name = None
        return name or default_name_from_email(caller.email)

    def _invitation(self, email: str) -> Invitation | None:
        try:
            return self.identity.get_invitation(email)
        except STORE_ERRORS as exc:
            logger.warning("Could not read invitation for %s: %s", email, exc)
            return None

    def _complete_invitation(self, email: str, is_admin: bool) -> None:
        try:
            self.identity.mark_signed_up(email)
        except STORE_ERRORS as exc:
            logger.warning("Failed to update signedUp flag for %s: %s", email, exc)
            return

        if not is_admin:
            return
        try:
            self.identity.set_admin_claim_for_email(email)
        except STORE_ERRORS as exc:
            logger.error("Failed to set admin claim for %s: %s", email, exc)
