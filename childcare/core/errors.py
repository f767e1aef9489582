# childcare/core/errors.py
"""
Service-level error taxonomy.

Services raise these instead of HTTPException so the same rules can be
exercised without a request in flight. Every kind carries the HTTP
status the API answers with; `main.py` registers one handler that
renders them.

    InvalidArgumentError -> 400
    UnauthorizedError    -> 401
    ForbiddenError       -> 403
    NotFoundError        -> 404
    ConflictError        -> 409
    DependencyError      -> 500
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import status
from firebase_admin.exceptions import FirebaseError
from google.api_core.exceptions import GoogleAPIError
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for every error a service is allowed to surface."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: str = "Internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"status": self.status_code, "kind": self.kind, "error": self.message}


class InvalidArgumentError(ServiceError):
    """
    Malformed or out-of-policy input.

    `errors` enumerates every violated field, so a client can fix them
    all in one round trip:

        [{"field": "expires_at", "message": "must be in the future"}, ...]
    """

    status_code = status.HTTP_400_BAD_REQUEST
    kind = "InvalidArgument"

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "NotFound"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    kind = "Conflict"


class UnauthorizedError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "Unauthorized"


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    kind = "Forbidden"


class DependencyError(ServiceError):
    """
    An underlying store call failed for reasons opaque to this layer
    (network, throttling, serialization). Never retried in-line.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "Dependency"

    def __init__(self, operation: str, cause: BaseException | None = None):
        detail = f"{operation} failed"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)
        self.operation = operation


class BlobStoreError(Exception):
    """Raised by blob store implementations for any storage failure."""


class BlobNotFoundError(BlobStoreError):
    """The requested blob path does not exist."""


# Failures of the external collaborators that become DependencyError.
STORE_ERRORS: tuple[type[BaseException], ...] = (
    SQLAlchemyError,
    BlobStoreError,
    FirebaseError,
    GoogleAPIError,
)


@contextmanager
def store_call(operation: str) -> Iterator[None]:
    """
    Wrap a store call so its failure surfaces as DependencyError.

    Usage:

        with store_call("UserRepository.update"):
            self.repo.update(session, user)

    ServiceErrors raised inside the block pass through unchanged.
    """
    try:
        yield
    except STORE_ERRORS as exc:
        logger.error("%s failed: %s", operation, exc)
        raise DependencyError(operation, exc) from exc
