# childcare/services/event_service.py
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from childcare.core.errors import ConflictError, NotFoundError, store_call
from childcare.models.event import Event
from childcare.repositories.event_repo import EventRepository
from childcare.repositories.user_repo import UserRepository
from childcare.schemas.event import EventCreate, EventRead, EventUpdate
from childcare.schemas.user import UserRead

logger = logging.getLogger(__name__)


class _UserLookup:
    """
    Per-call cache used while expanding events, so a user referenced
    by many events is fetched once. Tombstoned users resolve to None.
    """

    def __init__(self, repo: UserRepository, session: Session):
        self.repo = repo
        self.session = session
        self._cache: dict[str, UserRead | None] = {}

    def get(self, user_id: str) -> UserRead | None:
        if user_id not in self._cache:
            with store_call("UserRepository.get_by_id"):
                user = self.repo.get_by_id(self.session, user_id)
            live = user is not None and not user.deletion_pending
            self._cache[user_id] = UserRead.model_validate(user) if live else None
        return self._cache[user_id]


class EventService:
    """
    Business logic for Event.

    Responsibilities:
      - check that creator and invitees exist when an event is written
      - expand stored user ids into full users on read
    """

    def __init__(self, repo: EventRepository, user_repo: UserRepository):
        self.repo = repo
        self.user_repo = user_repo

    # ----- Reads -----

    def list_events(self, session: Session) -> list[EventRead]:
        with store_call("EventRepository.list"):
            events = self.repo.list(session)
        return self._expand_all(session, events)

    def list_for_user(self, session: Session, user_id: str) -> list[EventRead]:
        """
        Events the user created or is invited to.

        Raises:
            NotFoundError: if the user does not exist.
        """
        lookup = _UserLookup(self.user_repo, session)
        if lookup.get(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        with store_call("EventRepository.list"):
            events = self.repo.list(session)
        mine = [e for e in events if e.creator_id == user_id or user_id in e.invitee_ids]
        return self._expand_all(session, mine, lookup)

    def get_event(self, session: Session, event_id: str) -> EventRead:
        event = self._get(session, event_id)
        read = self._expand(event, _UserLookup(self.user_repo, session))
        if read is None:
            # Creator is mid-deletion; the event goes with them.
            raise NotFoundError(f"Event {event_id} not found")
        return read

    # ----- Writes -----

    def create_event(self, session: Session, creator_id: str, payload: EventCreate) -> EventRead:
        """
        Create an event owned by `creator_id`.

        Raises:
            NotFoundError: creator or an invitee does not exist.
            ConflictError: an event with the requested id exists.
        """
        lookup = _UserLookup(self.user_repo, session)
        if lookup.get(creator_id) is None:
            raise NotFoundError(f"Creator {creator_id} not found")
        self._check_invitees(lookup, payload.invitee_ids)

        event_id = payload.id or uuid.uuid4().hex
        with store_call("EventRepository.get_by_id"):
            existing = self.repo.get_by_id(session, event_id)
        if existing is not None:
            raise ConflictError(f"Event {event_id} already exists")

        event = Event(
            id=event_id,
            creator_id=creator_id,
            **payload.model_dump(exclude={"id"}),
        )
        with store_call("EventRepository.create"):
            try:
                event = self.repo.create(session, event)
            except IntegrityError:
                # Another request created the same id after the check above.
                session.rollback()
                raise ConflictError(f"Event {event_id} already exists")
        logger.info("Event %s created by %s", event.id, creator_id)
        return self._expand(event, lookup)

    def update_event(self, session: Session, event_id: str, payload: EventUpdate) -> EventRead:
        """Partial update; invitees are re-checked when replaced."""
        event = self._get(session, event_id)
        lookup = _UserLookup(self.user_repo, session)

        changes = payload.model_dump(exclude_unset=True)
        if changes.get("invitee_ids") is not None:
            self._check_invitees(lookup, changes["invitee_ids"])

        for key, value in changes.items():
            if value is not None:
                setattr(event, key, value)

        with store_call("EventRepository.update"):
            event = self.repo.update(session, event)
        read = self._expand(event, lookup)
        if read is None:
            raise NotFoundError(f"Event {event_id} not found")
        return read

    def delete_event(self, session: Session, event_id: str) -> None:
        event = self._get(session, event_id)
        with store_call("EventRepository.delete"):
            self.repo.delete(session, event)
        logger.info("Event %s deleted", event_id)

    # ----- Internals -----

    def _get(self, session: Session, event_id: str) -> Event:
        with store_call("EventRepository.get_by_id"):
            event = self.repo.get_by_id(session, event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        return event

    def _check_invitees(self, lookup: _UserLookup, invitee_ids: list[str]) -> None:
        missing = [i for i in invitee_ids if lookup.get(i) is None]
        if missing:
            raise NotFoundError(f"Invitees not found: {', '.join(missing)}")

    def _expand(self, event: Event, lookup: _UserLookup) -> EventRead | None:
        creator = lookup.get(event.creator_id)
        if creator is None:
            return None
        invitees = [u for u in (lookup.get(i) for i in event.invitee_ids) if u is not None]
        return EventRead(
            id=event.id,
            name=event.name,
            date=event.date,
            start_time=event.start_time,
            end_time=event.end_time,
            location=event.location,
            description=event.description,
            color=event.color,
            creator=creator,
            invitees=invitees,
        )

    def _expand_all(
        self,
        session: Session,
        events: list[Event],
        lookup: _UserLookup | None = None,
    ) -> list[EventRead]:
        lookup = lookup or _UserLookup(self.user_repo, session)
        expanded = (self._expand(e, lookup) for e in events)
        return [e for e in expanded if e is not None]
