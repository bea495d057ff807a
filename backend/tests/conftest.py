"""
Pytest configuration and fixtures for the test suite.
"""
import os
import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Set test environment before importing app
os.environ["ENV"] = "development"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-purposes-only-32chars"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["AUTO_CREATE_TABLES"] = "false"

from app.main import app
from app.db.base import Base
from app.core.deps import get_db
from app.core.rate_limiter import api_limiter, auth_limiter, summarize_limiter
from app.models.summary import Summary
from app.models.user import User
from app.schemas.summary import StructuredSummary
from app.services.auth import get_password_hash, create_user_token
from app.services.summary_generator import get_summary_generator
from app.services.transcript_fetcher import (
    TranscriptResult,
    TranscriptSourceKind,
    get_transcript_chain,
)


# Use SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite:///./test.db"
)

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in SQLALCHEMY_TEST_DATABASE_URL else {},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


SAMPLE_SUMMARY = {
    "overallSummary": "A walkthrough of building a small web service.",
    "sections": [
        {"title": "Setup", "content": "Installing the tools.", "timestamp": "02:10"},
        {"title": "Routing", "content": "Defining the endpoints.", "timestamp": "07:45"},
    ],
}


class FakeTranscriptChain:
    """Transcript chain double that records the videos it was asked for."""

    def __init__(
        self,
        text: str = "Welcome to the video. Today we build a web service.",
        title: str = "Building a Web Service",
        source_kind: TranscriptSourceKind = TranscriptSourceKind.OFFICIAL,
        error: Exception = None,
    ):
        self.text = text
        self.title = title
        self.source_kind = source_kind
        self.error = error
        self.calls = []

    async def fetch(self, video_id: str) -> TranscriptResult:
        self.calls.append(video_id)
        if self.error is not None:
            raise self.error
        return TranscriptResult(
            text=self.text, video_title=self.title, source_kind=self.source_kind
        )


class FakeSummaryGenerator:
    """Summary generator double returning a fixed summary."""

    def __init__(self, data: dict = None, error: Exception = None):
        self.data = data or SAMPLE_SUMMARY
        self.error = error
        self.calls = []

    async def generate(self, transcript: str) -> StructuredSummary:
        self.calls.append(transcript)
        if self.error is not None:
            raise self.error
        return StructuredSummary.model_validate(self.data)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Give every test a fresh rate limit window for the test client."""
    for limiter in (auth_limiter, api_limiter, summarize_limiter):
        limiter.reset("testclient")
    yield


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def transcript_chain() -> FakeTranscriptChain:
    return FakeTranscriptChain()


@pytest.fixture
def summary_generator() -> FakeSummaryGenerator:
    return FakeSummaryGenerator()


@pytest.fixture(scope="function")
def client(
    db: Session,
    transcript_chain: FakeTranscriptChain,
    summary_generator: FakeSummaryGenerator,
) -> Generator[TestClient, None, None]:
    """Create a test client with database and external service overrides."""

    def override_get_db_with_session():
        """Return the test database session."""
        yield db

    app.dependency_overrides[get_db] = override_get_db_with_session
    app.dependency_overrides[get_transcript_chain] = lambda: transcript_chain
    app.dependency_overrides[get_summary_generator] = lambda: summary_generator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user with a few credits."""
    user = User(
        email="user@example.com",
        password_hash=get_password_hash("TestPassword123"),
        display_name="Test User",
        credits=5,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Create authentication headers for test user."""
    token = create_user_token(test_user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def authenticated_client(client: TestClient, auth_headers: dict) -> TestClient:
    """Create an authenticated test client."""
    client.headers.update(auth_headers)
    return client


@pytest.fixture
def other_user(db: Session) -> User:
    """Create another test user."""
    user = User(
        email="other@example.com",
        password_hash=get_password_hash("OtherPassword123"),
        display_name="Other User",
        credits=5,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def test_summary(db: Session, test_user: User) -> Summary:
    """Create a stored summary for the test user."""
    summary = Summary(
        user_id=test_user.id,
        video_id="abc123XYZ_",
        video_title="Building a Web Service",
        transcript_source=TranscriptSourceKind.OFFICIAL.value,
        summary_data=SAMPLE_SUMMARY,
    )
    db.add(summary)
    db.commit()
    db.refresh(summary)
    return summary


@pytest.fixture
def other_user_summary(db: Session, other_user: User) -> Summary:
    """Create a summary owned by another user."""
    summary = Summary(
        user_id=other_user.id,
        video_id="otherVid01",
        video_title="Someone Else's Video",
        transcript_source=TranscriptSourceKind.MANUAL_CAPTIONS.value,
        summary_data=SAMPLE_SUMMARY,
    )
    db.add(summary)
    db.commit()
    db.refresh(summary)
    return summary
