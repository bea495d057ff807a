"""
Tests for the credit-gated summarization workflow.
"""
import asyncio
import uuid
from typing import Optional

import pytest
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AIServiceError,
    ErrorCode,
    TranscriptUnavailableError,
    VideoNotFoundError,
    user_message_for,
)
from app.models.summary import Summary
from app.models.user import User
from app.repositories.summaries import NewSummary, SqlSummaryStore, SummaryStore
from app.repositories.users import SqlUserStore, UserStore
from app.services.auth import create_access_token, create_user_token
from app.services.summary_orchestrator import (
    OrchestratorState,
    SummarizeFailure,
    SummarizeSuccess,
    SummaryOrchestrator,
)
from app.services.transcript_fetcher import TranscriptSourceKind

from conftest import FakeSummaryGenerator, FakeTranscriptChain, TestingSessionLocal

VIDEO_URL = "https://www.youtube.com/watch?v=abc123XYZ_"


class InMemoryUserStore(UserStore):
    def __init__(self, *users: User):
        self.users = {u.id: u for u in users}
        self.update_error: Optional[Exception] = None
        self.update_applies_anyway = False
        self.update_returns_none = False

    def find_by_id(self, user_id):
        return self.users.get(user_id)

    def find_by_email(self, email):
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def create(self, user):
        if self.find_by_email(user.email) is not None:
            raise RuntimeError("duplicate email")
        self.users[user.id] = user
        return user

    def update_credits(self, user_id, new_value):
        user = self.users.get(user_id)
        if self.update_error is not None:
            if self.update_applies_anyway and user is not None:
                user.credits = new_value
            raise self.update_error
        if user is None or self.update_returns_none:
            return None
        user.credits = new_value
        return user


class InMemorySummaryStore(SummaryStore):
    def __init__(self):
        self.records = []
        self.insert_error: Optional[Exception] = None

    def insert_summary(self, record: NewSummary):
        if self.insert_error is not None:
            raise self.insert_error
        self.records.append(record)
        return uuid.uuid4()

    def list_by_user(self, user_id, page, page_size):
        mine = [r for r in self.records if r.user_id == user_id]
        return mine[(page - 1) * page_size:page * page_size], len(mine)

    def get_by_id(self, summary_id):
        return None

    def delete_by_id(self, summary_id):
        return False


def _user(credits: int = 5, email: str = "user@example.com") -> User:
    return User(id=uuid.uuid4(), email=email, display_name="User", credits=credits)


def _orchestrator(users, summaries=None, chain=None, generator=None, **kwargs):
    return SummaryOrchestrator(
        users=users,
        summaries=summaries or InMemorySummaryStore(),
        transcripts=chain or FakeTranscriptChain(),
        generator=generator or FakeSummaryGenerator(),
        **kwargs,
    )


def _run(orchestrator, url=VIDEO_URL, token=None):
    return asyncio.run(orchestrator.summarize(url, token))


class TestSuccess:
    def test_summarize_spends_one_credit(self):
        user = _user(credits=5)
        users, summaries = InMemoryUserStore(user), InMemorySummaryStore()
        chain = FakeTranscriptChain(title="Building a Web Service")
        orchestrator = _orchestrator(users, summaries, chain)

        outcome = _run(orchestrator, token=create_user_token(user))

        assert isinstance(outcome, SummarizeSuccess)
        assert outcome.ok
        assert outcome.video_id == "abc123XYZ_"
        assert outcome.video_title == "Building a Web Service"
        assert outcome.transcript_source == TranscriptSourceKind.OFFICIAL
        assert outcome.transcript_source.value == "Official transcript"
        assert outcome.remaining_credits == 4
        assert outcome.user_id == user.id
        assert users.find_by_id(user.id).credits == 4

        assert chain.calls == ["abc123XYZ_"]
        assert len(summaries.records) == 1
        record = summaries.records[0]
        assert record.user_id == user.id
        assert record.transcript_source == "Official transcript"
        assert record.summary_data["overallSummary"] == outcome.structured_summary.overall_summary

    def test_states_visited_in_order(self):
        user = _user()
        seen = []
        orchestrator = _orchestrator(InMemoryUserStore(user), on_transition=seen.append)

        _run(orchestrator, token=create_user_token(user))

        expected = [
            OrchestratorState.VALIDATING_INPUT,
            OrchestratorState.LOCATING_USER,
            OrchestratorState.CHECKING_CREDITS,
            OrchestratorState.FETCHING_TRANSCRIPT,
            OrchestratorState.GENERATING_SUMMARY,
            OrchestratorState.DEDUCTING_CREDIT,
            OrchestratorState.PERSISTING,
            OrchestratorState.DONE,
        ]
        assert seen == expected
        assert orchestrator.history == [OrchestratorState.IDLE] + expected
        assert orchestrator.state == OrchestratorState.DONE

    def test_repeat_requests_charge_twice(self):
        user = _user(credits=4)
        users, summaries = InMemoryUserStore(user), InMemorySummaryStore()
        token = create_user_token(user)

        first = _run(_orchestrator(users, summaries), token=token)
        second = _run(_orchestrator(users, summaries), token=token)

        assert first.ok and second.ok
        assert second.remaining_credits == 2
        assert len(summaries.records) == 2

    def test_last_credit_can_be_spent(self):
        user = _user(credits=1)
        users = InMemoryUserStore(user)

        outcome = _run(_orchestrator(users), token=create_user_token(user))

        assert outcome.ok
        assert outcome.remaining_credits == 0


class TestInputAndIdentity:
    @pytest.mark.parametrize("url", ["", "   ", None])
    def test_missing_url(self, url):
        user = _user()
        outcome = _run(_orchestrator(InMemoryUserStore(user)), url=url, token=create_user_token(user))

        assert isinstance(outcome, SummarizeFailure)
        assert outcome.error_code == ErrorCode.MISSING_INPUT
        assert outcome.failed_state == OrchestratorState.VALIDATING_INPUT

    def test_missing_token(self):
        outcome = _run(_orchestrator(InMemoryUserStore()), token=None)
        assert outcome.error_code == ErrorCode.MISSING_INPUT

    def test_invalid_url(self):
        user = _user()
        chain = FakeTranscriptChain()
        outcome = _run(
            _orchestrator(InMemoryUserStore(user), chain=chain),
            url="https://vimeo.com/123",
            token=create_user_token(user),
        )

        assert outcome.error_code == ErrorCode.INVALID_URL
        assert outcome.user_message == user_message_for(ErrorCode.INVALID_URL)
        assert chain.calls == []

    def test_unverifiable_token(self):
        outcome = _run(_orchestrator(InMemoryUserStore()), token="not-a-jwt")

        assert outcome.error_code == ErrorCode.SESSION_INVALID
        assert outcome.failed_state == OrchestratorState.LOCATING_USER

    def test_token_with_non_uuid_subject(self):
        token = create_access_token({"sub": "42", "email": "user@example.com"})
        outcome = _run(_orchestrator(InMemoryUserStore()), token=token)
        assert outcome.error_code == ErrorCode.SESSION_INVALID

    def test_unknown_user_is_provisioned(self):
        users = InMemoryUserStore()
        user_id = uuid.uuid4()
        token = create_access_token({"sub": str(user_id), "email": "New@Example.com"})

        outcome = _run(_orchestrator(users, default_credits=10), token=token)

        assert outcome.ok
        assert outcome.remaining_credits == 9
        provisioned = users.find_by_id(user_id)
        assert provisioned.email == "new@example.com"
        assert provisioned.credits == 9

    def test_id_mismatch_adopts_record_found_by_email(self):
        stored = _user(credits=3)
        users = InMemoryUserStore(stored)
        token = create_access_token({"sub": str(uuid.uuid4()), "email": stored.email})

        outcome = _run(_orchestrator(users), token=token)

        assert outcome.ok
        assert outcome.user_id == stored.id
        assert stored.credits == 2
        assert len(users.users) == 1

    def test_provisioning_race_rereads_by_email(self):
        winner = _user(credits=7, email="race@example.com")

        class RacingStore(InMemoryUserStore):
            def find_by_email(self, email):
                found = super().find_by_email(email)
                # The concurrent request lands between our lookup and insert
                if found is None:
                    self.users[winner.id] = winner
                return found

        users = RacingStore()
        token = create_access_token({"sub": str(uuid.uuid4()), "email": "race@example.com"})

        outcome = _run(_orchestrator(users), token=token)

        assert outcome.ok
        assert outcome.user_id == winner.id
        assert winner.credits == 6


class TestCreditGate:
    def test_zero_credits_makes_no_external_calls(self):
        user = _user(credits=0)
        summaries = InMemorySummaryStore()
        chain, generator = FakeTranscriptChain(), FakeSummaryGenerator()
        orchestrator = _orchestrator(InMemoryUserStore(user), summaries, chain, generator)

        outcome = _run(orchestrator, token=create_user_token(user))

        assert outcome.error_code == ErrorCode.INSUFFICIENT_CREDITS
        assert outcome.failed_state == OrchestratorState.CHECKING_CREDITS
        assert chain.calls == []
        assert generator.calls == []
        assert summaries.records == []
        assert user.credits == 0
        assert orchestrator.state == OrchestratorState.FAILED

    def test_negative_credits_rejected(self):
        user = _user(credits=-1)
        outcome = _run(_orchestrator(InMemoryUserStore(user)), token=create_user_token(user))
        assert outcome.error_code == ErrorCode.INSUFFICIENT_CREDITS


class TestDownstreamFailures:
    @pytest.mark.parametrize(
        "error, code",
        [
            (TranscriptUnavailableError(), ErrorCode.TRANSCRIPT_UNAVAILABLE),
            (VideoNotFoundError(), ErrorCode.VIDEO_NOT_FOUND),
        ],
    )
    def test_transcript_failures_keep_credits(self, error, code):
        user = _user(credits=5)
        summaries = InMemorySummaryStore()
        generator = FakeSummaryGenerator()
        orchestrator = _orchestrator(
            InMemoryUserStore(user), summaries, FakeTranscriptChain(error=error), generator
        )

        outcome = _run(orchestrator, token=create_user_token(user))

        assert outcome.error_code == code
        assert outcome.failed_state == OrchestratorState.FETCHING_TRANSCRIPT
        assert generator.calls == []
        assert user.credits == 5
        assert summaries.records == []

    def test_ai_failure_keeps_credits(self):
        user = _user(credits=5)
        summaries = InMemorySummaryStore()
        orchestrator = _orchestrator(
            InMemoryUserStore(user),
            summaries,
            generator=FakeSummaryGenerator(error=AIServiceError()),
        )

        outcome = _run(orchestrator, token=create_user_token(user))

        assert outcome.error_code == ErrorCode.AI_SERVICE_ERROR
        assert outcome.failed_state == OrchestratorState.GENERATING_SUMMARY
        assert user.credits == 5
        assert summaries.records == []

    def test_persistence_failure_does_not_refund(self):
        user = _user(credits=5)
        summaries = InMemorySummaryStore()
        summaries.insert_error = RuntimeError("disk full")

        outcome = _run(
            _orchestrator(InMemoryUserStore(user), summaries), token=create_user_token(user)
        )

        assert outcome.error_code == ErrorCode.PERSISTENCE_FAILED
        assert outcome.failed_state == OrchestratorState.PERSISTING
        assert "disk full" not in outcome.user_message
        assert user.credits == 4

    def test_credit_update_not_applied(self):
        user = _user(credits=5)
        users, summaries = InMemoryUserStore(user), InMemorySummaryStore()
        users.update_returns_none = True

        outcome = _run(_orchestrator(users, summaries), token=create_user_token(user))

        assert outcome.error_code == ErrorCode.CREDIT_UPDATE_FAILED
        assert outcome.failed_state == OrchestratorState.DEDUCTING_CREDIT
        assert user.credits == 5
        assert summaries.records == []

    def test_credit_update_error_but_write_applied(self):
        user = _user(credits=5)
        users = InMemoryUserStore(user)
        users.update_error = RuntimeError("connection reset after commit")
        users.update_applies_anyway = True

        outcome = _run(_orchestrator(users), token=create_user_token(user))

        assert outcome.ok
        assert outcome.remaining_credits == 4

    def test_credit_update_error_not_applied(self):
        user = _user(credits=5)
        users = InMemoryUserStore(user)
        users.update_error = RuntimeError("connection refused")

        outcome = _run(_orchestrator(users), token=create_user_token(user))

        assert outcome.error_code == ErrorCode.CREDIT_UPDATE_FAILED
        assert user.credits == 5

    def test_balance_spent_concurrently_before_deduction(self):
        user = _user(credits=1)

        class SpendingGenerator(FakeSummaryGenerator):
            async def generate(self, transcript):
                # Another request spends the last credit meanwhile
                user.credits = 0
                return await super().generate(transcript)

        summaries = InMemorySummaryStore()
        outcome = _run(
            _orchestrator(InMemoryUserStore(user), summaries, generator=SpendingGenerator()),
            token=create_user_token(user),
        )

        assert outcome.error_code == ErrorCode.INSUFFICIENT_CREDITS
        assert outcome.failed_state == OrchestratorState.DEDUCTING_CREDIT
        assert user.credits == 0
        assert summaries.records == []

    def test_balance_read_fails_before_deduction(self):
        user = _user(credits=5)

        class DroppingStore(InMemoryUserStore):
            connected = True

            def find_by_id(self, user_id):
                if not self.connected:
                    raise ConnectionError("connection dropped")
                return super().find_by_id(user_id)

        users = DroppingStore(user)

        class DisconnectingGenerator(FakeSummaryGenerator):
            async def generate(self, transcript):
                users.connected = False
                return await super().generate(transcript)

        summaries = InMemorySummaryStore()
        outcome = _run(
            _orchestrator(users, summaries, generator=DisconnectingGenerator()),
            token=create_user_token(user),
        )

        assert outcome.error_code == ErrorCode.CREDIT_UPDATE_FAILED
        assert outcome.failed_state == OrchestratorState.DEDUCTING_CREDIT
        assert user.credits == 5
        assert summaries.records == []

    def test_unexpected_error(self):
        class BrokenStore(InMemoryUserStore):
            def find_by_id(self, user_id):
                raise ConnectionError("database unavailable")

        user = _user()
        outcome = _run(_orchestrator(BrokenStore(user)), token=create_user_token(user))

        assert outcome.error_code == ErrorCode.UNEXPECTED
        assert outcome.failed_state == OrchestratorState.LOCATING_USER
        assert "database" not in outcome.user_message


class TestWithDatabase:
    """The workflow against the SQLAlchemy stores."""

    def test_success_persists_and_deducts(self, db: Session, test_user: User):
        orchestrator = SummaryOrchestrator(
            users=SqlUserStore(db),
            summaries=SqlSummaryStore(db),
            transcripts=FakeTranscriptChain(),
            generator=FakeSummaryGenerator(),
        )

        outcome = asyncio.run(orchestrator.summarize(VIDEO_URL, create_user_token(test_user)))

        assert outcome.ok
        assert outcome.remaining_credits == 4
        db.refresh(test_user)
        assert test_user.credits == 4
        stored = db.query(Summary).filter(Summary.id == outcome.summary_id).first()
        assert stored.user_id == test_user.id
        assert stored.video_id == "abc123XYZ_"
        assert stored.summary_data["sections"][0]["title"] == "Setup"

    def test_provisioned_user_is_stored(self, db: Session):
        user_id = uuid.uuid4()
        token = create_access_token({"sub": str(user_id), "email": "fresh@example.com"})
        orchestrator = SummaryOrchestrator(
            users=SqlUserStore(db),
            summaries=SqlSummaryStore(db),
            transcripts=FakeTranscriptChain(),
            generator=FakeSummaryGenerator(),
            default_credits=3,
        )

        outcome = asyncio.run(orchestrator.summarize(VIDEO_URL, token))

        assert outcome.ok
        user = db.query(User).filter(User.id == user_id).first()
        assert user.email == "fresh@example.com"
        assert user.password_hash is None
        assert user.credits == 2

    @staticmethod
    def _set_credits_elsewhere(user_id, credits: int) -> None:
        other = TestingSessionLocal()
        try:
            other.query(User).filter(User.id == user_id).update({"credits": credits})
            other.commit()
        finally:
            other.close()

    def test_deducts_from_balance_committed_by_another_session(
        self, db: Session, test_user: User
    ):
        user_id = test_user.id

        class SpendingGenerator(FakeSummaryGenerator):
            async def generate(self, transcript):
                # Another request spends four credits meanwhile
                TestWithDatabase._set_credits_elsewhere(user_id, 1)
                return await super().generate(transcript)

        orchestrator = SummaryOrchestrator(
            users=SqlUserStore(db),
            summaries=SqlSummaryStore(db),
            transcripts=FakeTranscriptChain(),
            generator=SpendingGenerator(),
        )

        outcome = asyncio.run(orchestrator.summarize(VIDEO_URL, create_user_token(test_user)))

        assert outcome.ok
        assert outcome.remaining_credits == 0
        check = TestingSessionLocal()
        try:
            assert check.query(User).filter(User.id == user_id).first().credits == 0
        finally:
            check.close()

    def test_balance_emptied_by_another_session(self, db: Session, test_user: User):
        user_id = test_user.id

        class SpendingGenerator(FakeSummaryGenerator):
            async def generate(self, transcript):
                TestWithDatabase._set_credits_elsewhere(user_id, 0)
                return await super().generate(transcript)

        orchestrator = SummaryOrchestrator(
            users=SqlUserStore(db),
            summaries=SqlSummaryStore(db),
            transcripts=FakeTranscriptChain(),
            generator=SpendingGenerator(),
        )

        outcome = asyncio.run(orchestrator.summarize(VIDEO_URL, create_user_token(test_user)))

        assert outcome.error_code == ErrorCode.INSUFFICIENT_CREDITS
        assert outcome.failed_state == OrchestratorState.DEDUCTING_CREDIT
        assert db.query(Summary).count() == 0
        db.refresh(test_user)
        assert test_user.credits == 0
