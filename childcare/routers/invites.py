# childcare/routers/invites.py
from fastapi import APIRouter, Depends, Request, status

from childcare.core.auth import require_admin
from childcare.schemas.invite import InviteCreate, InviteRead
from childcare.services.invite_service import InviteService

router = APIRouter(prefix="/invites", tags=["Invites"])


def get_invite_service(request: Request) -> InviteService:
    return request.app.state.invite_service


@router.post(
    "",
    response_model=InviteRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def send_invite(
    payload: InviteCreate,
    service: InviteService = Depends(get_invite_service),
):
    """
    E-mail a signup invitation and record it (admin only).

    `admin=true` makes the invitee an admin once they sign up.
    """
    service.send_invite(payload.email, admin=payload.admin)
    return InviteRead(email=payload.email, admin=payload.admin, message="Invitation sent")
