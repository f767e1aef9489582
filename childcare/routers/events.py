# childcare/routers/events.py
from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session

from childcare.core.auth import require_auth
from childcare.core.firebase import Identity
from childcare.database import get_session
from childcare.schemas.event import EventCreate, EventRead, EventUpdate
from childcare.services.event_service import EventService

router = APIRouter(
    prefix="/events",
    tags=["Events"],
    dependencies=[Depends(require_auth)],
)


def get_event_service(request: Request) -> EventService:
    return request.app.state.event_service


@router.get("", response_model=list[EventRead])
def list_events(
    session: Session = Depends(get_session),
    service: EventService = Depends(get_event_service),
):
    """All events, with creator and invitees expanded."""
    return service.list_events(session)


@router.get("/user/{user_id}", response_model=list[EventRead])
def list_events_for_user(
    user_id: str,
    session: Session = Depends(get_session),
    service: EventService = Depends(get_event_service),
):
    """Events the user created or is invited to."""
    return service.list_for_user(session, user_id)


@router.get("/{event_id}", response_model=EventRead)
def get_event(
    event_id: str,
    session: Session = Depends(get_session),
    service: EventService = Depends(get_event_service),
):
    return service.get_event(session, event_id)


@router.post("", response_model=EventRead, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    session: Session = Depends(get_session),
    caller: Identity = Depends(require_auth),
    service: EventService = Depends(get_event_service),
):
    """
    Create an event; the caller becomes its creator.

    404 if the caller has no profile or an invitee does not exist,
    409 if the requested id is taken.
    """
    return service.create_event(session, caller.uid, payload)


@router.put("/{event_id}", response_model=EventRead)
def update_event(
    event_id: str,
    payload: EventUpdate,
    session: Session = Depends(get_session),
    service: EventService = Depends(get_event_service),
):
    return service.update_event(session, event_id, payload)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: str,
    session: Session = Depends(get_session),
    service: EventService = Depends(get_event_service),
):
    service.delete_event(session, event_id)
