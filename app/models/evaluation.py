import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EvaluationType(str, enum.Enum):
    QUIZ = "quiz"
    EXAM = "exam"
    ASSIGNMENT = "assignment"
    PROJECT = "project"


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"

    @property
    def is_objective(self) -> bool:
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)


# =========================
# Evaluation
# =========================
class Evaluation(Base):
    __tablename__ = "evaluations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    title = Column(String(255), nullable=False)
    evaluation_type = Column(String(20), nullable=False, default=EvaluationType.QUIZ.value)

    max_score = Column(Integer, nullable=False)
    passing_score = Column(Integer, nullable=False)

    # NULL = untimed
    time_limit_minutes = Column(Integer, nullable=True)
    allow_retake = Column(Boolean, nullable=False, default=False)

    is_published = Column(Boolean, nullable=False, default=False)
    available_from = Column(DateTime(timezone=True), nullable=True)
    available_until = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    questions = relationship(
        "Question",
        back_populates="evaluation",
        order_by="Question.position",
        cascade="all, delete-orphan",
    )


# =========================
# Question
# =========================
class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        UniqueConstraint("evaluation_id", "position", name="uq_question_position"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    evaluation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("evaluations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)

    question_type = Column(String(20), nullable=False)
    prompt = Column(Text, nullable=False)

    options = Column(JSON, nullable=True)
    correct_answer = Column(JSON, nullable=True)

    points = Column(Integer, nullable=False, default=1)

    evaluation = relationship("Evaluation", back_populates="questions")
