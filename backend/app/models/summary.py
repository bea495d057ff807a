"""
Summary model for generated video summaries.
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.db.base import Base


class Summary(Base):
    """
    A structured summary generated for a YouTube video.

    Attributes:
        id: Unique identifier
        user_id: Owner of the summary
        video_id: YouTube video ID the summary was generated from
        video_title: Title reported by the YouTube Data API
        transcript_source: Label of the transcript tier that was used
        summary_data: Structured summary JSON ({"overallSummary", "sections"})
        created_at: Creation timestamp
    """

    __tablename__ = "summaries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    video_id = Column(String(32), nullable=False)
    video_title = Column(String(500), nullable=True)
    transcript_source = Column(String(50), nullable=True)
    summary_data = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="summaries")
