import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Uuid

from app.db.base import Base


class Result(Base):
    __tablename__ = "results"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("evaluation_sessions.id"),
        nullable=False,
        unique=True,
    )
    submission_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("submissions.id"),
        nullable=False,
        unique=True,
    )
    evaluation_id = Column(Uuid(as_uuid=True), ForeignKey("evaluations.id"), nullable=False, index=True)

    score = Column(Float, nullable=False)
    max_score = Column(Float, nullable=False)
    percentage = Column(Float, nullable=False)

    passed = Column(Boolean, nullable=False)
    provisional = Column(Boolean, nullable=False)
    grade = Column(String(2), nullable=False)

    # Ordered per-question entries (must be non-null)
    question_breakdown = Column(JSON, nullable=False)

    engine_version = Column(String(50), nullable=False)

    # bumped on every write; manual grades are compare-and-swapped on it
    version = Column(Integer, nullable=False, default=1)

    graded_at = Column(DateTime(timezone=True), nullable=False)
    # set once no question remains pending
    finalized_at = Column(DateTime(timezone=True), nullable=True)
