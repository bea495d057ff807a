"""
API endpoints for YouTube video summaries.
"""

import logging
import math
import urllib.parse
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import (
    get_bearer_token,
    get_current_user,
    get_db,
    get_summary_orchestrator,
)
from app.core.exceptions import SummarizationError
from app.models.user import User
from app.repositories.summaries import SqlSummaryStore
from app.schemas.summary import (
    SummarizeRequest,
    SummarizeResponse,
    SummaryListItem,
    SummaryListResponse,
    SummaryResponse,
)
from app.services.audit import AuditAction, TargetType, get_client_info, log_action
from app.services.export_service import export_service
from app.services.summary_orchestrator import SummaryOrchestrator, SummarizeFailure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/summaries", tags=["summaries"])


def _encode_filename(filename: str) -> str:
    """Encode filename for Content-Disposition header (RFC 5987)."""
    safe_filename = filename.replace('"', "'").replace("\\", "_")
    encoded = urllib.parse.quote(safe_filename, safe="")
    return f"attachment; filename*=UTF-8''{encoded}"


@router.post("", response_model=SummarizeResponse, status_code=status.HTTP_201_CREATED)
async def create_summary(
    req: SummarizeRequest,
    request: Request,
    access_token: Optional[str] = Depends(get_bearer_token),
    orchestrator: SummaryOrchestrator = Depends(get_summary_orchestrator),
    db: Session = Depends(get_db),
):
    """
    Summarize a YouTube video.

    One credit is spent per successful summary:
    1. Check the caller has at least one credit
    2. Fetch the best available transcript
    3. Generate the structured summary
    4. Deduct the credit and save the summary

    Failures return the mapped HTTP status with a stable ``error_code``.
    """
    outcome = await orchestrator.summarize(req.youtube_url, access_token)

    if isinstance(outcome, SummarizeFailure):
        raise SummarizationError(outcome.error_code)

    ip_address, user_agent = get_client_info(request)
    log_action(
        db=db,
        action=AuditAction.CREATE_SUMMARY,
        user_id=outcome.user_id,
        target_type=TargetType.SUMMARY,
        target_id=str(outcome.summary_id),
        details={"video_id": outcome.video_id},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    return SummarizeResponse(
        id=outcome.summary_id,
        structured_summary=outcome.structured_summary,
        video_id=outcome.video_id,
        video_title=outcome.video_title,
        transcript_source=outcome.transcript_source.value,
        remaining_credits=outcome.remaining_credits,
    )


@router.get("", response_model=SummaryListResponse)
async def list_summaries(
    page: int = 1,
    per_page: int = settings.SUMMARIES_PAGE_SIZE,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    List summaries for the current user, newest first.
    """
    if page < 1:
        page = 1
    if per_page < 1 or per_page > 100:
        per_page = settings.SUMMARIES_PAGE_SIZE

    items, total = SqlSummaryStore(db).list_by_user(current_user.id, page, per_page)

    return SummaryListResponse(
        items=[
            SummaryListItem(
                id=item.id,
                video_id=item.video_id,
                video_title=item.video_title,
                transcript_source=item.transcript_source,
                overall_summary=(item.summary_data or {}).get("overallSummary", ""),
                created_at=item.created_at,
            )
            for item in items
        ],
        total=total,
        page=page,
        per_page=per_page,
        pages=math.ceil(total / per_page) if total > 0 else 0,
    )


@router.get("/export")
async def export_summaries(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Export all of the current user's summaries as a Markdown file.
    """
    summaries = SqlSummaryStore(db).list_all_by_user(current_user.id)
    content = export_service.format_summaries_markdown(summaries, current_user)

    ip_address, user_agent = get_client_info(request)
    log_action(
        db=db,
        action=AuditAction.EXPORT_SUMMARIES,
        user_id=current_user.id,
        target_type=TargetType.SUMMARY,
        details={"count": len(summaries)},
        ip_address=ip_address,
        user_agent=user_agent,
    )

    filename = f"summaries_{datetime.now().strftime('%Y%m%d')}.md"
    return Response(
        content=content.encode("utf-8"),
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": _encode_filename(filename)},
    )


@router.get("/{summary_id}", response_model=SummaryResponse)
async def get_summary(
    summary_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get a specific summary by ID.
    """
    summary = SqlSummaryStore(db).get_by_id(summary_id)

    if not summary or summary.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Summary not found",
        )

    return summary


@router.delete("/{summary_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_summary(
    summary_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Delete one of the current user's summaries.
    """
    store = SqlSummaryStore(db)
    summary = store.get_by_id(summary_id)

    if not summary:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Summary not found",
        )
    if summary.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this summary",
        )

    store.delete_by_id(summary_id)

    ip_address, user_agent = get_client_info(request)
    log_action(
        db=db,
        action=AuditAction.DELETE_SUMMARY,
        user_id=current_user.id,
        target_type=TargetType.SUMMARY,
        target_id=str(summary_id),
        ip_address=ip_address,
        user_agent=user_agent,
    )

    logger.info(f"Deleted summary {summary_id}")
