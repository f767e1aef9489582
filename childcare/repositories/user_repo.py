# childcare/repositories/user_repo.py
from __future__ import annotations

from sqlalchemy import delete
from sqlmodel import Session, select

from childcare.models.user import User


class UserRepository:
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic

    Every write commits on its own; callers that chain several writes
    get no transaction spanning them.
    """

    # ----- Basic CRUD -----

    def get_by_id(self, session: Session, user_id: str) -> User | None:
        """Return a User by primary key (tombstoned or not), or None."""
        return session.get(User, user_id)

    def list(self, session: Session, skip: int = 0, limit: int = 50) -> list[User]:
        """
        Paginated listing of live users (tombstones excluded).

        Args:
            skip: offset rows (for paging)
            limit: max number of rows returned
        """
        stmt = (
            select(User)
            .where(User.deletion_pending == False)  # noqa: E712
            .order_by(User.created_at, User.id)
            .offset(skip)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def list_pending_deletion(self, session: Session) -> list[User]:
        """Users whose deletion started but has not finished."""
        stmt = select(User).where(User.deletion_pending == True)  # noqa: E712
        return list(session.exec(stmt).all())

    def create(self, session: Session, user: User) -> User:
        """
        Insert a new User and return the persisted row.

        Raises:
            IntegrityError: a row with the same id already exists.
        """
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    def update(self, session: Session, user: User) -> User:
        """Persist changes to an existing User."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    def delete_by_id(self, session: Session, user_id: str) -> int:
        """
        Delete the User row with this id.

        Returns:
            Rows deleted; 0 when another session already removed it.
        """
        result = session.exec(delete(User).where(User.id == user_id))
        session.commit()
        return result.rowcount
