# childcare/core/auth.py
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from childcare.core.errors import ForbiddenError, UnauthorizedError
from childcare.core.firebase import Identity
from childcare.database import get_session
from childcare.models.user import User

# HTTP Bearer scheme:
# - auto_error=False => a missing Authorization header does not raise here,
#   so the 401 comes out of our own error handler with the usual body.
bearer_scheme = HTTPBearer(auto_error=False)


def get_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity | None:
    """
    Resolve the caller from a Firebase ID token.

    Returns:
        Identity if a bearer token was sent, else None (anonymous).

    Raises:
        UnauthorizedError: if the token is invalid/expired.
    """
    if credentials is None:
        return None
    return request.app.state.identity.verify_token(credentials.credentials)


def require_auth(identity: Identity | None = Depends(get_identity)) -> Identity:
    """
    Enforce authentication.

    If attached to a route, anonymous callers are rejected with 401.

    Raises:
        UnauthorizedError: if no token was sent.
    """
    if identity is None:
        raise UnauthorizedError("Authentication required")
    return identity


def is_admin(session: Session, identity: Identity) -> bool:
    """
    Admin if the token carries the `admin` custom claim, or the user
    record has role "admin" (claim propagation can lag behind signup).
    """
    if identity.admin:
        return True
    user = session.get(User, identity.uid)
    return user is not None and not user.deletion_pending and user.role == "admin"


def require_admin(
    identity: Identity = Depends(require_auth),
    session: Session = Depends(get_session),
) -> Identity:
    """
    Enforce admin access.

    Raises:
        ForbiddenError: if the caller is not an admin.
    """
    if not is_admin(session, identity):
        raise ForbiddenError("Admin access required")
    return identity


def require_self_or_admin(session: Session, identity: Identity, user_id: str) -> None:
    """
    Allow access to a user's own resource, or to any resource for admins.

    Raises:
        ForbiddenError: otherwise.
    """
    if identity.uid == user_id:
        return
    if not is_admin(session, identity):
        raise ForbiddenError("You can only modify your own account")
