import enum
import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    UniqueConstraint,
    text,
)

from app.db.base import Base
from app.models.evaluation import utcnow


class SessionStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    SUBMITTED = "submitted"


# =========================
# Evaluation Session (one attempt)
# =========================
class EvaluationSession(Base):
    __tablename__ = "evaluation_sessions"
    __table_args__ = (
        # At most one ACTIVE attempt per (evaluation, taker)
        Index(
            "uq_active_session_per_taker",
            "evaluation_id",
            "taker_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    evaluation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("evaluations.id"),
        nullable=False,
        index=True,
    )
    taker_id = Column(String(255), nullable=False, index=True)

    status = Column(String(20), nullable=False, default=SessionStatus.ACTIVE.value)

    started_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_activity_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expired_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)


# =========================
# Draft Answer
# =========================
class DraftAnswer(Base):
    __tablename__ = "draft_answers"
    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_draft_session_question"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("evaluation_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(Uuid(as_uuid=True), nullable=False)

    answer = Column(JSON, nullable=True)

    # server-side arrival order, bumped on every upsert
    revision = Column(Integer, nullable=False, default=1)
    saved_at = Column(DateTime(timezone=True), nullable=False)


# =========================
# Submission (immutable)
# =========================
class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("evaluation_sessions.id"),
        nullable=False,
        unique=True,
    )

    answers = Column(JSON, nullable=False)
    attachments = Column(JSON, nullable=False)

    # hash of the explicit submit payload, distinguishes retries from resubmits
    fingerprint = Column(String(64), nullable=False)

    submitted_at = Column(DateTime(timezone=True), nullable=False)
