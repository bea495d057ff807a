"""
Summary orchestration workflow.

Sequences one summarization request:

    VALIDATING_INPUT -> LOCATING_USER -> CHECKING_CREDITS -> FETCHING_TRANSCRIPT
    -> GENERATING_SUMMARY -> DEDUCTING_CREDIT -> PERSISTING -> DONE

Any step may move the run to FAILED, which is terminal. The credit check
happens before any paid external call. A credit that was already deducted
is not refunded when persisting the summary fails afterwards; that rare
"credit spent, nothing saved" outcome is accepted. Requests are not
deduplicated: submitting the same URL twice charges twice.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, List, Optional, Union
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import (
    CreditUpdateFailedError,
    ErrorCode,
    InsufficientCreditsError,
    PersistenceFailedError,
    SummarizationError,
    user_message_for,
)
from app.models.user import User
from app.repositories.summaries import NewSummary, SummaryStore
from app.repositories.users import UserStore
from app.schemas.auth import TokenData
from app.schemas.summary import StructuredSummary
from app.services.auth import decode_access_token
from app.services.summary_generator import SummaryGenerator
from app.services.transcript_fetcher import (
    TranscriptResult,
    TranscriptSourceChain,
    TranscriptSourceKind,
)
from app.services.youtube_url import extract_video_id

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    IDLE = "idle"
    VALIDATING_INPUT = "validating_input"
    LOCATING_USER = "locating_user"
    CHECKING_CREDITS = "checking_credits"
    FETCHING_TRANSCRIPT = "fetching_transcript"
    GENERATING_SUMMARY = "generating_summary"
    DEDUCTING_CREDIT = "deducting_credit"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SummarizeSuccess:
    summary_id: UUID
    user_id: UUID
    structured_summary: StructuredSummary
    video_id: str
    video_title: str
    transcript_source: TranscriptSourceKind
    remaining_credits: int

    ok: ClassVar[bool] = True


@dataclass
class SummarizeFailure:
    error_code: ErrorCode
    user_message: str
    failed_state: OrchestratorState

    ok: ClassVar[bool] = False


SummarizeOutcome = Union[SummarizeSuccess, SummarizeFailure]


class SummaryOrchestrator:
    """
    Runs the credit-gated summarization pipeline for one caller.

    An instance keeps the state of its current run, so each request should
    use its own instance.
    """

    def __init__(
        self,
        users: UserStore,
        summaries: SummaryStore,
        transcripts: TranscriptSourceChain,
        generator: SummaryGenerator,
        verify_identity: Callable[[str], Optional[TokenData]] = decode_access_token,
        default_credits: Optional[int] = None,
        on_transition: Optional[Callable[[OrchestratorState], None]] = None,
    ):
        self.users = users
        self.summaries = summaries
        self.transcripts = transcripts
        self.generator = generator
        self.verify_identity = verify_identity
        self.default_credits = (
            default_credits
            if default_credits is not None
            else settings.DEFAULT_USER_CREDITS
        )
        self.on_transition = on_transition
        self.state = OrchestratorState.IDLE
        self.history: List[OrchestratorState] = [OrchestratorState.IDLE]

    def _transition(self, state: OrchestratorState) -> None:
        logger.info(f"Summarize: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)
        if self.on_transition is not None:
            self.on_transition(state)

    async def summarize(
        self, youtube_url: Optional[str], access_token: Optional[str]
    ) -> SummarizeOutcome:
        """
        Summarize a YouTube video on behalf of the token's owner.

        Args:
            youtube_url: URL of the video
            access_token: Caller's bearer token

        Returns:
            SummarizeSuccess, or SummarizeFailure with a stable error code
        """
        self.state = OrchestratorState.IDLE
        self.history = [OrchestratorState.IDLE]

        try:
            video_id = self._validate_input(youtube_url, access_token)
            user = self._locate_user(access_token)
            self._check_credits(user)
            transcript = await self._fetch_transcript(video_id)
            summary = await self._generate_summary(transcript)
            remaining = self._deduct_credit(user.id)
            summary_id = self._persist(user.id, video_id, transcript, summary)
        except SummarizationError as e:
            return self._fail(e)
        except Exception as e:
            logger.exception(f"Unexpected error while {self.state.value}: {e}")
            return self._fail(SummarizationError(ErrorCode.UNEXPECTED, cause=e))

        self._transition(OrchestratorState.DONE)
        return SummarizeSuccess(
            summary_id=summary_id,
            user_id=user.id,
            structured_summary=summary,
            video_id=video_id,
            video_title=transcript.video_title,
            transcript_source=transcript.source_kind,
            remaining_credits=remaining,
        )

    def _fail(self, error: SummarizationError) -> SummarizeFailure:
        failed_state = self.state
        cause = f" ({type(error.cause).__name__}: {error.cause})" if error.cause else ""
        logger.warning(
            f"Summarize failed while {failed_state.value}: {error.error_code.value}{cause}"
        )
        self._transition(OrchestratorState.FAILED)
        return SummarizeFailure(
            error_code=error.error_code,
            user_message=user_message_for(error.error_code),
            failed_state=failed_state,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _validate_input(
        self, youtube_url: Optional[str], access_token: Optional[str]
    ) -> str:
        self._transition(OrchestratorState.VALIDATING_INPUT)
        if not youtube_url or not youtube_url.strip() or not access_token:
            raise SummarizationError(ErrorCode.MISSING_INPUT)

        video_id = extract_video_id(youtube_url.strip())
        if not video_id:
            raise SummarizationError(ErrorCode.INVALID_URL)
        return video_id

    def _locate_user(self, access_token: str) -> User:
        self._transition(OrchestratorState.LOCATING_USER)

        identity = self.verify_identity(access_token)
        if identity is None or not identity.user_id:
            raise SummarizationError(ErrorCode.SESSION_INVALID)
        try:
            user_id = UUID(identity.user_id)
        except ValueError:
            raise SummarizationError(ErrorCode.SESSION_INVALID)

        user = self.users.find_by_id(user_id)
        if user is not None:
            return user

        email = (identity.email or "").strip().lower()
        if not email:
            raise SummarizationError(ErrorCode.SESSION_INVALID)

        user = self.users.find_by_email(email)
        if user is not None:
            logger.warning(
                f"No user with id {user_id}; using record {user.id} matched by email"
            )
            return user

        return self._provision_user(user_id, email)

    def _provision_user(self, user_id: UUID, email: str) -> User:
        logger.info(
            f"Provisioning user {user_id} with {self.default_credits} starting credits"
        )
        try:
            return self.users.create(
                User(
                    id=user_id,
                    email=email,
                    display_name=email.split("@")[0],
                    credits=self.default_credits,
                )
            )
        except Exception as e:
            # A concurrent request may have provisioned the same identity
            existing = self.users.find_by_email(email)
            if existing is not None:
                return existing
            raise SummarizationError(ErrorCode.UNEXPECTED, cause=e)

    def _check_credits(self, user: User) -> None:
        self._transition(OrchestratorState.CHECKING_CREDITS)
        if user.credits is None or user.credits <= 0:
            raise InsufficientCreditsError()

    async def _fetch_transcript(self, video_id: str) -> TranscriptResult:
        self._transition(OrchestratorState.FETCHING_TRANSCRIPT)
        return await self.transcripts.fetch(video_id)

    async def _generate_summary(self, transcript: TranscriptResult) -> StructuredSummary:
        self._transition(OrchestratorState.GENERATING_SUMMARY)
        logger.info(
            f"Transcript length: {len(transcript.text)} characters, "
            f"source: {transcript.source_kind.value}"
        )
        return await self.generator.generate(transcript.text)

    def _deduct_credit(self, user_id: UUID) -> int:
        self._transition(OrchestratorState.DEDUCTING_CREDIT)

        # Decrement from a fresh read, not the balance seen at the credit check
        try:
            current = self.users.find_by_id(user_id)
        except Exception as e:
            raise CreditUpdateFailedError(cause=e)
        if current is None:
            raise CreditUpdateFailedError()
        if current.credits <= 0:
            raise InsufficientCreditsError()
        expected = current.credits - 1

        try:
            updated = self.users.update_credits(user_id, expected)
        except Exception as e:
            logger.warning(f"Credit update for {user_id} raised: {e}")
            updated = None

        if updated is not None:
            return updated.credits

        # The write may have committed even though it reported a failure
        try:
            check = self.users.find_by_id(user_id)
        except Exception as e:
            raise CreditUpdateFailedError(cause=e)
        if check is not None and check.credits == expected:
            logger.info(f"Credit update for {user_id} was applied despite the error")
            return expected
        raise CreditUpdateFailedError()

    def _persist(
        self,
        user_id: UUID,
        video_id: str,
        transcript: TranscriptResult,
        summary: StructuredSummary,
    ) -> UUID:
        self._transition(OrchestratorState.PERSISTING)
        try:
            return self.summaries.insert_summary(
                NewSummary(
                    user_id=user_id,
                    video_id=video_id,
                    video_title=transcript.video_title,
                    summary_data=summary.to_json(),
                    transcript_source=transcript.source_kind.value,
                )
            )
        except Exception as e:
            raise PersistenceFailedError(cause=e)
