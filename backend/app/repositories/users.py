"""
User store: the only way the summarization workflow reads or writes users.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.user import User


class UserStore(ABC):
    """Contract for user persistence. "Not found" is ``None``, never an error."""

    @abstractmethod
    def find_by_id(self, user_id: UUID) -> Optional[User]:
        ...

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    def create(self, user: User) -> User:
        ...

    @abstractmethod
    def update_credits(self, user_id: UUID, new_value: int) -> Optional[User]:
        """Set the credit balance; ``None`` when no row was updated."""
        ...


class SqlUserStore(UserStore):
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_id(self, user_id: UUID) -> Optional[User]:
        # Reload from the database; rows already in the session may be stale
        return (
            self.session.query(User)
            .populate_existing()
            .filter(User.id == user_id)
            .first()
        )

    def find_by_email(self, email: str) -> Optional[User]:
        return (
            self.session.query(User)
            .filter(User.email == email.strip().lower())
            .first()
        )

    def create(self, user: User) -> User:
        user.email = user.email.strip().lower()
        try:
            self.session.add(user)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(user)
        return user

    def update_credits(self, user_id: UUID, new_value: int) -> Optional[User]:
        user = self.find_by_id(user_id)
        if user is None:
            return None
        user.credits = new_value
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(user)
        return user
