# childcare/routers/users.py
from fastapi import APIRouter, Body, Depends, Request, Response, status
from sqlmodel import Session

from childcare.core.auth import is_admin, require_admin, require_auth, require_self_or_admin
from childcare.core.firebase import Identity
from childcare.database import get_session
from childcare.schemas.user import (
    DeletionStatusRead,
    SweepResult,
    UserRead,
    UserSignup,
    UserUpdate,
)
from childcare.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


# -------- Signup --------


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def signup(
    payload: UserSignup | None = Body(default=None),
    session: Session = Depends(get_session),
    caller: Identity = Depends(require_auth),
    service: UserService = Depends(get_user_service),
):
    """
    Create the caller's profile from their Firebase identity.

    Invited admins get role "admin" and the admin custom claim.

    Auth:
      - Requires a valid Firebase ID token.
    """
    return service.signup(session, caller, payload)


@router.post("/sync", response_model=UserRead)
def sync_user(
    response: Response,
    payload: UserSignup | None = Body(default=None),
    session: Session = Depends(get_session),
    caller: Identity = Depends(require_auth),
    service: UserService = Depends(get_user_service),
):
    """
    Make sure the caller has a profile.

    201 when it was just created, 200 when it already existed.
    """
    user, created = service.sync(session, caller, payload)
    if created:
        response.status_code = status.HTTP_201_CREATED
    return user


# -------- Reads --------


@router.get(
    "",
    response_model=list[UserRead],
    dependencies=[Depends(require_auth)],
)
def list_users(
    session: Session = Depends(get_session),
    service: UserService = Depends(get_user_service),
    skip: int = 0,
    limit: int = 50,
):
    """
    List users. Pagination via skip/limit.
    """
    return service.list_users(session, skip, limit)


@router.get(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_auth)],
)
def get_user(
    user_id: str,
    session: Session = Depends(get_session),
    service: UserService = Depends(get_user_service),
):
    return service.get_user(session, user_id)


# -------- Self / admin writes --------


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    payload: UserUpdate,
    session: Session = Depends(get_session),
    caller: Identity = Depends(require_auth),
    service: UserService = Depends(get_user_service),
):
    """
    Partial profile update.

    Auth:
      - the user themself, or an admin
      - only admins may change `role`
    """
    require_self_or_admin(session, caller, user_id)
    return service.update_user(
        session,
        user_id,
        payload,
        caller_is_admin=is_admin(session, caller),
    )


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    session: Session = Depends(get_session),
    caller: Identity = Depends(require_auth),
    service: UserService = Depends(get_user_service),
):
    """
    Delete a user together with their events, invitations and images.

    On a partial failure the answer is 500 naming the failed step and
    GET /users/{id}/deletion reports "pending" until the sweeper is done.
    """
    require_self_or_admin(session, caller, user_id)
    service.delete_user(session, user_id)


# -------- Deletion admin --------


@router.get(
    "/{user_id}/deletion",
    response_model=DeletionStatusRead,
    dependencies=[Depends(require_admin)],
)
def deletion_status(
    user_id: str,
    session: Session = Depends(get_session),
    service: UserService = Depends(get_user_service),
):
    """active / pending; 404 once the user is fully gone."""
    return DeletionStatusRead(
        user_id=user_id,
        status=service.deletion.deletion_status(session, user_id),
    )


@router.post(
    "/deletions/sweep",
    response_model=SweepResult,
    dependencies=[Depends(require_admin)],
)
def sweep_deletions(
    session: Session = Depends(get_session),
    service: UserService = Depends(get_user_service),
):
    """Retry every pending user deletion now (admin only)."""
    return service.deletion.sweep_pending(session)
