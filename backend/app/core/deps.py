"""
Common dependencies for FastAPI endpoints.
"""
from typing import Generator, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.user import User
from app.repositories.summaries import SqlSummaryStore
from app.repositories.users import SqlUserStore
from app.services.auth import decode_access_token, get_user_by_id
from app.services.summary_generator import SummaryGenerator, get_summary_generator
from app.services.summary_orchestrator import SummaryOrchestrator
from app.services.transcript_fetcher import TranscriptSourceChain, get_transcript_chain

# HTTP Bearer token security scheme
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user from JWT token.

    Args:
        credentials: Bearer token from Authorization header
        db: Database session

    Returns:
        Authenticated User object

    Raises:
        HTTPException: If token is invalid or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = credentials.credentials
    token_data = decode_access_token(token)

    if token_data is None or token_data.user_id is None:
        raise credentials_exception

    try:
        user_id = UUID(token_data.user_id)
    except ValueError:
        raise credentials_exception

    user = get_user_by_id(db, user_id)
    if user is None:
        raise credentials_exception

    return user


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
) -> Optional[str]:
    """
    Raw bearer token, or None when the header is missing.

    The summarization workflow verifies the token itself so that a missing
    or stale session is reported with its own error code.
    """
    if credentials is None:
        return None
    return credentials.credentials


def get_summary_orchestrator(
    db: Session = Depends(get_db),
    transcripts: TranscriptSourceChain = Depends(get_transcript_chain),
    generator: SummaryGenerator = Depends(get_summary_generator),
) -> SummaryOrchestrator:
    """Build a per-request summarization workflow bound to the request's session."""
    return SummaryOrchestrator(
        users=SqlUserStore(db),
        summaries=SqlSummaryStore(db),
        transcripts=transcripts,
        generator=generator,
    )
