from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings
from app.db.base import Base
import app.models.evaluation  # noqa: F401
import app.models.session  # noqa: F401
import app.models.result  # noqa: F401
from app.engine.clock import FixedClock
from app.schemas.evaluation import EvaluationCreate
from app.services.catalogue import EvaluationCatalogue
from app.services.evaluation_session import EvaluationSessionService
from app.services.storage import LocalAttachmentStorage

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class RecordingNotifier:
    def __init__(self):
        self.succeeded = []
        self.failed = []

    def submission_succeeded(self, session, submission, result) -> None:
        self.succeeded.append((session.id, submission.id, result.id))

    def submission_failed(self, session_id, error: Exception) -> None:
        self.failed.append((session_id, type(error).__name__))


@pytest.fixture
def db_engine(tmp_path):
    # File-backed so several connections (threads, TestClient) share one database
    engine = create_engine(
        f"sqlite:///{tmp_path / 'sessions.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        DATABASE_URL="sqlite://",
        ATTACHMENTS_DIR=str(tmp_path / "attachments"),
        REPORTS_DIR=str(tmp_path / "reports"),
        MAX_ATTACHMENTS=2,
        MAX_ATTACHMENT_BYTES=1024,
        IDLE_TIMEOUT_MINUTES=None,
    )


@pytest.fixture
def storage(test_settings):
    return LocalAttachmentStorage(test_settings.ATTACHMENTS_DIR, test_settings.MAX_ATTACHMENT_BYTES)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_service(session_factory, storage, notifier, clock, test_settings):
    """Build a façade on its own database session (one per simulated request)."""
    created = []

    def _make(**overrides):
        db = session_factory()
        created.append(db)
        return EvaluationSessionService(
            db,
            storage=overrides.get("storage", storage),
            notifier=overrides.get("notifier", notifier),
            clock=overrides.get("clock", clock),
            settings=overrides.get("settings", test_settings),
        )

    yield _make
    for db in created:
        db.close()


@pytest.fixture
def service(make_service):
    return make_service()


def evaluation_payload(with_essay: bool = False, **overrides) -> EvaluationCreate:
    """Two multiple choice questions worth 2 and 3 points, 10 minute limit."""
    data = {
        "title": "Probability basics",
        "evaluation_type": "quiz",
        "passing_score": 3,
        "time_limit_minutes": 10,
        "allow_retake": False,
        "is_published": True,
        "questions": [
            {
                "prompt": "Capital of France?",
                "question_type": "multiple_choice",
                "points": 2,
                "options": ["Paris", "London", "Rome"],
                "correct_answer": "Paris",
            },
            {
                "prompt": "2 + 2 = ?",
                "question_type": "multiple_choice",
                "points": 3,
                "options": ["3", "4", "5"],
                "correct_answer": "4",
            },
        ],
    }
    if with_essay:
        data["questions"].append(
            {
                "prompt": "Explain the law of large numbers.",
                "question_type": "essay",
                "points": 5,
            }
        )
    data.update(overrides)
    return EvaluationCreate(**data)


@pytest.fixture
def payload_factory():
    return evaluation_payload


@pytest.fixture
def create_evaluation(db):
    def _create(with_essay: bool = False, **overrides):
        return EvaluationCatalogue(db).create_evaluation(
            evaluation_payload(with_essay=with_essay, **overrides)
        )

    return _create
