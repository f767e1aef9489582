# childcare/services/user_deletion.py
"""
Cascading user removal across the table store and the image bucket.

The stores share no transaction, so deletion is tombstone-first:

  1. mark the user `deletion_pending` (hidden from every read from now on)
  2. delete events created by the user
  3. remove the user from every event's invitees
  4. delete the user's blobs ("<user id>/...")
  5. purge the user record

Steps 2-5 are idempotent and tolerate rows that a retried request or
the sweeper already removed. If one fails, the request reports which
step failed and the tombstone stays; `sweep_pending()` re-runs the remaining
work for every tombstoned user until it goes through.
"""

import logging
import threading
from collections.abc import Callable

from sqlalchemy.engine import Engine
from sqlmodel import Session

from childcare.core.errors import DependencyError, NotFoundError, store_call
from childcare.models.user import User
from childcare.repositories.blob_repo import BlobStore
from childcare.repositories.event_repo import EventRepository
from childcare.repositories.user_repo import UserRepository
from childcare.schemas.user import SweepResult

logger = logging.getLogger(__name__)


class UserDeletionCoordinator:
    """
    Deletes a user and everything that references them.

    Responsibilities:
      - order the per-store steps and stop at the first failure
      - keep the tombstone until every step has succeeded
      - report deletion progress ("active" / "pending")
    """

    def __init__(
        self,
        user_repo: UserRepository,
        event_repo: EventRepository,
        blob_store: BlobStore,
    ):
        self.users = user_repo
        self.events = event_repo
        self.blobs = blob_store

    def delete_user(self, session: Session, user_id: str) -> None:
        """
        Delete `user_id` and all dependent state.

        Calling it again for a user whose deletion is pending resumes the
        remaining steps.

        Raises:
            NotFoundError: no such user; nothing is touched.
            DependencyError: a step failed; `operation` names it and the
                user stays "pending" until the sweeper finishes the job.
        """
        with store_call("UserRepository.get_by_id"):
            user = self.users.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        if not user.deletion_pending:
            user.deletion_pending = True
            self._run_step(session, "mark_deletion_pending", lambda: self.users.update(session, user))
            logger.info("User %s marked for deletion", user_id)

        self._finish(session, user)

    def deletion_status(self, session: Session, user_id: str) -> str:
        """
        Returns:
            "pending" while a deletion is in progress, "active" otherwise.

        Raises:
            NotFoundError: no record left (never existed or fully deleted).
        """
        with store_call("UserRepository.get_by_id"):
            user = self.users.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return "pending" if user.deletion_pending else "active"

    def sweep_pending(self, session: Session) -> SweepResult:
        """
        Retry the cascade for every tombstoned user.

        A failure for one user is logged and does not stop the sweep.
        """
        result = SweepResult()
        with store_call("UserRepository.list_pending_deletion"):
            pending = self.users.list_pending_deletion(session)

        for user in pending:
            result.processed += 1
            try:
                self._finish(session, user)
            except DependencyError as exc:
                logger.warning("Deletion of user %s still pending: %s", user.id, exc.message)
                result.failed.append(user.id)
            else:
                result.completed.append(user.id)

        if pending:
            logger.info(
                "Deletion sweep: %d processed, %d completed, %d still pending",
                result.processed,
                len(result.completed),
                len(result.failed),
            )
        return result

    # ----- Internals -----

    def _finish(self, session: Session, user: User) -> None:
        user_id = user.id

        events_deleted = self._run_step(
            session,
            "delete_events_by_creator",
            lambda: self.events.delete_by_creator(session, user_id),
        )
        invites_removed = self._run_step(
            session,
            "remove_invitee_everywhere",
            lambda: self.events.remove_invitee_everywhere(session, user_id),
        )
        blobs_deleted = self._run_step(
            session,
            "delete_blobs_for_owner",
            lambda: self.blobs.delete_all_for_owner(user_id),
        )
        purged = self._run_step(
            session,
            "delete_user_record",
            lambda: self.users.delete_by_id(session, user_id),
        )
        if not purged:
            logger.info("User %s was already purged by a concurrent deletion", user_id)
            return

        logger.info(
            "User %s deleted (%d events, %d invitations, %d blobs)",
            user_id,
            events_deleted,
            invites_removed,
            blobs_deleted,
        )

    def _run_step(self, session: Session, step: str, action: Callable):
        try:
            with store_call(step):
                return action()
        except DependencyError:
            # Leave the session usable for the next user in a sweep.
            session.rollback()
            raise


class DeletionSweeper:
    """
    Background thread that calls `sweep_pending()` every `interval`
    seconds with its own Session.
    """

    def __init__(
        self,
        coordinator: UserDeletionCoordinator,
        engine: Engine,
        interval: float,
    ):
        self.coordinator = coordinator
        self.engine = engine
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> SweepResult:
        with Session(self.engine) as session:
            return self.coordinator.sweep_pending(session)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._loop,
            name="deletion-sweeper",
            daemon=True,
        )
        self._thread.start()
        logger.info("Deletion sweeper started (every %ss)", self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except DependencyError as exc:
                logger.error("Deletion sweep failed: %s", exc.message)
