# app/services/results.py

import logging
import uuid
from typing import Any, Dict, List

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.errors import ResultConflict, ResultNotFound
from app.engine.clock import SystemClock, ensure_utc
from app.engine.grading_engine import GradeOutcome, GradingEngine, QuestionGrade
from app.models.result import Result
from app.models.session import EvaluationSession, Submission
from app.schemas.evaluation import EvaluationStats

logger = logging.getLogger(__name__)

DISTRIBUTION_BUCKETS = (
    ("90-100", 90.0, None),
    ("80-89", 80.0, 90.0),
    ("70-79", 70.0, 80.0),
    ("60-69", 60.0, 70.0),
    ("0-59", None, 60.0),
)

MANUAL_GRADE_ATTEMPTS = 3


def _as_uuid(value, error) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise error


def _columns(outcome: GradeOutcome) -> Dict[str, Any]:
    return {
        "score": outcome.score,
        "max_score": outcome.max_score,
        "percentage": outcome.percentage,
        "passed": outcome.passed,
        "provisional": outcome.provisional,
        "grade": outcome.grade,
        "question_breakdown": outcome.breakdown(),
        "engine_version": outcome.engine_version,
    }


class ResultsService:
    def __init__(self, db: Session, catalogue, grading: GradingEngine = None, clock=None):
        self.db = db
        self.catalogue = catalogue
        self.grading = grading or GradingEngine()
        self.clock = clock or SystemClock()

    # ------------------------------------------------------------
    # Creation (inside the submit transaction)
    # ------------------------------------------------------------

    def record(
        self,
        session: EvaluationSession,
        submission: Submission,
        outcome: GradeOutcome,
        graded_at,
    ) -> Result:
        """Stage a Result for the submission; the caller commits."""
        result = Result(
            session_id=session.id,
            submission_id=submission.id,
            evaluation_id=session.evaluation_id,
            graded_at=graded_at,
            finalized_at=None if outcome.provisional else graded_at,
            version=1,
            **_columns(outcome),
        )
        self.db.add(result)
        self.db.flush()
        return result

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    def get(self, result_id) -> Result:
        result = self.db.get(
            Result,
            _as_uuid(result_id, ResultNotFound(f"Result {result_id} not found")),
            populate_existing=True,
        )
        if not result:
            raise ResultNotFound(f"Result {result_id} not found")
        return result

    def for_session(self, session_id: uuid.UUID) -> Result:
        result = (
            self.db.query(Result)
            .filter(Result.session_id == session_id)
            .populate_existing()
            .first()
        )
        if not result:
            raise ResultNotFound(f"No result for session {session_id}")
        return result

    # ------------------------------------------------------------
    # Manual grading
    # ------------------------------------------------------------

    def record_manual_grade(
        self,
        result_id,
        question_id: str,
        score: float,
        feedback: str = "",
    ) -> Result:
        """
        Record a reviewer's grade for a short-answer or essay question.

        Raises ScoreOutOfRange / NotManuallyGradable / UnknownQuestion through
        the grading engine; nothing is written in that case. The write is a
        compare-and-swap on Result.version: when another reviewer committed in
        between, the breakdown is re-read and the grade applied again.
        """
        key = _as_uuid(result_id, ResultNotFound(f"Result {result_id} not found"))

        for attempt in range(1, MANUAL_GRADE_ATTEMPTS + 1):
            result = (
                self.db.query(Result)
                .filter(Result.id == key)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not result:
                raise ResultNotFound(f"Result {result_id} not found")

            try:
                evaluation = self.catalogue.get_view(result.evaluation_id)
                grades = [QuestionGrade.from_dict(entry) for entry in result.question_breakdown]
                outcome = self.grading.apply_manual_grade(
                    evaluation, grades, str(question_id), score, feedback
                )

                values = _columns(outcome)
                if result.provisional and not outcome.provisional:
                    values["finalized_at"] = self.clock.now()

                written = self.db.execute(
                    update(Result)
                    .where(Result.id == result.id)
                    .where(Result.version == result.version)
                    .values(version=result.version + 1, **values)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if written == 1:
                    self.db.commit()
                    break
                self.db.rollback()
            except Exception:
                self.db.rollback()
                raise

            logger.warning(
                "Result %s changed while grading question %s, retrying (%s/%s)",
                key, question_id, attempt, MANUAL_GRADE_ATTEMPTS,
            )
        else:
            raise ResultConflict(
                f"Result {result_id} changed {MANUAL_GRADE_ATTEMPTS} times while grading question {question_id}"
            )

        self.db.refresh(result)
        logger.info(
            "Manual grade recorded result=%s question=%s score=%s provisional=%s",
            result.id, question_id, score, result.provisional,
        )
        return result

    # ------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------

    def evaluation_stats(self, evaluation_id) -> EvaluationStats:
        evaluation = self.catalogue.get_view(evaluation_id)
        rows = (
            self.db.query(Result, EvaluationSession.started_at, Submission.submitted_at)
            .join(EvaluationSession, EvaluationSession.id == Result.session_id)
            .join(Submission, Submission.id == Result.submission_id)
            .filter(Result.evaluation_id == uuid.UUID(evaluation.id))
            .all()
        )

        final = [r for r, _, _ in rows if not r.provisional]
        durations = [
            (ensure_utc(submitted_at) - ensure_utc(started_at)).total_seconds()
            for _, started_at, submitted_at in rows
        ]

        return EvaluationStats(
            evaluation_id=evaluation.id,
            total_submissions=len(rows),
            graded_submissions=len(final),
            average_score=_mean([r.score for r in final]),
            average_percentage=_mean([r.percentage for r in final]),
            average_time_seconds=_mean(durations),
            pass_rate=round(100.0 * sum(1 for r in final if r.passed) / len(final), 2) if final else 0.0,
            distribution=_distribution([r.percentage for r in final]),
            letter_grades=_letter_counts([r.grade for r in final]),
        )


def _mean(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _distribution(percentages: List[float]) -> Dict[str, int]:
    counts = {}
    for label, low, high in DISTRIBUTION_BUCKETS:
        counts[label] = sum(
            1 for p in percentages
            if (low is None or p >= low) and (high is None or p < high)
        )
    return counts


def _letter_counts(grades: List[str]) -> Dict[str, int]:
    counts = {letter: 0 for letter in ("A", "B", "C", "D", "F")}
    for grade in grades:
        counts[grade] = counts.get(grade, 0) + 1
    return counts
