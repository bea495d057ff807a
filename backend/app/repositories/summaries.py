"""
Persistence store for generated summaries.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.summary import Summary


@dataclass
class NewSummary:
    """Fields of a summary record before it is stored."""

    user_id: UUID
    video_id: str
    video_title: str
    summary_data: dict
    transcript_source: Optional[str] = None


class SummaryStore(ABC):
    """Contract for summary persistence. Ownership checks belong to the caller."""

    @abstractmethod
    def insert_summary(self, record: NewSummary) -> UUID:
        ...

    @abstractmethod
    def list_by_user(
        self, user_id: UUID, page: int, page_size: int
    ) -> tuple[list[Summary], int]:
        ...

    @abstractmethod
    def get_by_id(self, summary_id: UUID) -> Optional[Summary]:
        ...

    @abstractmethod
    def delete_by_id(self, summary_id: UUID) -> bool:
        ...


class SqlSummaryStore(SummaryStore):
    def __init__(self, session: Session) -> None:
        self.session = session

    def insert_summary(self, record: NewSummary) -> UUID:
        summary = Summary(
            user_id=record.user_id,
            video_id=record.video_id,
            video_title=record.video_title,
            transcript_source=record.transcript_source,
            summary_data=record.summary_data,
        )
        try:
            self.session.add(summary)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(summary)
        return summary.id

    def list_by_user(
        self, user_id: UUID, page: int, page_size: int
    ) -> tuple[list[Summary], int]:
        query = self.session.query(Summary).filter(Summary.user_id == user_id)
        total = query.count()
        items = (
            query.order_by(Summary.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def list_all_by_user(self, user_id: UUID) -> list[Summary]:
        return (
            self.session.query(Summary)
            .filter(Summary.user_id == user_id)
            .order_by(Summary.created_at.desc())
            .all()
        )

    def get_by_id(self, summary_id: UUID) -> Optional[Summary]:
        return self.session.query(Summary).filter(Summary.id == summary_id).first()

    def delete_by_id(self, summary_id: UUID) -> bool:
        summary = self.get_by_id(summary_id)
        if summary is None:
            return False
        try:
            self.session.delete(summary)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return True
