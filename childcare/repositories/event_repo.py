# childcare/repositories/event_repo.py
from __future__ import annotations

from sqlalchemy import delete
from sqlmodel import Session, select

from childcare.models.event import Event


class EventRepository:
    """
    Data access layer for Event.

    Rows store user ids only (creator_id, invitee_ids); resolving them
    to User objects is EventService's job.
    """

    def get_by_id(self, session: Session, event_id: str) -> Event | None:
        return session.get(Event, event_id)

    def list(self, session: Session) -> list[Event]:
        stmt = select(Event).order_by(Event.date, Event.start_time, Event.id)
        return list(session.exec(stmt).all())

    def create(self, session: Session, event: Event) -> Event:
        """
        Raises:
            IntegrityError: an event with the same id already exists.
        """
        session.add(event)
        session.commit()
        session.refresh(event)
        return event

    def update(self, session: Session, event: Event) -> Event:
        session.add(event)
        session.commit()
        session.refresh(event)
        return event

    def delete(self, session: Session, event: Event) -> None:
        session.delete(event)
        session.commit()

    # ----- Bulk maintenance (user deletion) -----

    def delete_by_creator(self, session: Session, creator_id: str) -> int:
        """
        Delete every event created by `creator_id`.

        A single DELETE statement, so rows another session removed in the
        meantime are simply not counted.

        Returns:
            Number of events deleted (0 is not an error).
        """
        result = session.exec(delete(Event).where(Event.creator_id == creator_id))
        session.commit()
        return result.rowcount

    def remove_invitee_everywhere(self, session: Session, user_id: str) -> int:
        """
        Drop `user_id` from the invitee list of every event.

        Events left without invitees are kept with an empty list.
        The JSON column is filtered in Python so the query stays portable
        between Postgres and SQLite.

        Returns:
            Number of events rewritten.
        """
        rewritten = 0
        for event in session.exec(select(Event)).all():
            if user_id in event.invitee_ids:
                # Reassign (not mutate) so SQLAlchemy sees the change.
                event.invitee_ids = [i for i in event.invitee_ids if i != user_id]
                session.add(event)
                rewritten += 1
        session.commit()
        return rewritten
