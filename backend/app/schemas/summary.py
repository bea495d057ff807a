"""
Pydantic schemas for video summaries.
"""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SummarySection(BaseModel):
    """One timestamped section of a structured summary."""

    title: str
    content: str
    timestamp: str = Field(..., description="End of the section, MM:SS")


class StructuredSummary(BaseModel):
    """
    AI-generated summary: an overview plus ordered sections.

    Field names follow the JSON contract with the completion service.
    Sections are kept as returned by the model; only a missing or empty
    list is replaced.
    """

    model_config = ConfigDict(populate_by_name=True)

    overall_summary: str = Field(..., alias="overallSummary")
    sections: List[Any] = Field(..., min_length=1)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class SummarizeRequest(BaseModel):
    """Request to summarize a YouTube video."""

    youtube_url: str = Field("", max_length=2048, description="YouTube video URL")


class SummarizeResponse(BaseModel):
    """Successful summarization result."""

    id: UUID
    structured_summary: StructuredSummary
    video_id: str
    video_title: str
    transcript_source: str
    remaining_credits: int


class SummaryResponse(BaseModel):
    """Stored summary."""

    id: UUID
    user_id: UUID
    video_id: str
    video_title: Optional[str] = None
    transcript_source: Optional[str] = None
    summary_data: StructuredSummary
    created_at: datetime

    class Config:
        from_attributes = True


class SummaryListItem(BaseModel):
    """Summary list item (lighter version)."""

    id: UUID
    video_id: str
    video_title: Optional[str] = None
    transcript_source: Optional[str] = None
    overall_summary: str
    created_at: datetime


class SummaryListResponse(BaseModel):
    """Paginated list of summaries."""

    items: List[SummaryListItem]
    total: int
    page: int
    per_page: int
    pages: int
