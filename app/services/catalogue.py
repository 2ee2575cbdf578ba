# app/services/catalogue.py
"""
Evaluation catalogue.

Authoring CRUD belongs to the wider platform; the session engine only needs
to create an evaluation, toggle its publication and read an immutable view of
its questions and answer key.
"""

import logging
import uuid

from sqlalchemy.orm import Session, selectinload

from app.core.errors import EvaluationNotFound, InvalidEvaluation
from app.engine.clock import ensure_utc
from app.engine.scorer import EnhancedScorer
from app.engine.views import EvaluationView, QuestionView
from app.models.evaluation import Evaluation, Question, QuestionType
from app.schemas.evaluation import EvaluationCreate

logger = logging.getLogger(__name__)


def _as_uuid(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise EvaluationNotFound(f"Evaluation {value} not found")


def to_view(evaluation: Evaluation) -> EvaluationView:
    questions = tuple(
        QuestionView(
            id=str(q.id),
            position=q.position,
            question_type=QuestionType(q.question_type),
            prompt=q.prompt,
            points=q.points,
            options=tuple(q.options or ()),
            correct_answer=q.correct_answer,
        )
        for q in sorted(evaluation.questions, key=lambda q: q.position)
    )
    return EvaluationView(
        id=str(evaluation.id),
        title=evaluation.title,
        evaluation_type=evaluation.evaluation_type,
        max_score=evaluation.max_score,
        passing_score=evaluation.passing_score,
        time_limit_minutes=evaluation.time_limit_minutes,
        allow_retake=evaluation.allow_retake,
        is_published=evaluation.is_published,
        available_from=ensure_utc(evaluation.available_from) if evaluation.available_from else None,
        available_until=ensure_utc(evaluation.available_until) if evaluation.available_until else None,
        questions=questions,
    )


class EvaluationCatalogue:
    def __init__(self, db: Session, scorer: EnhancedScorer = None):
        self.db = db
        self.scorer = scorer or EnhancedScorer()

    def create_evaluation(self, payload: EvaluationCreate) -> EvaluationView:
        """
        Persist a new evaluation after checking its invariants:
        question points sum to max_score, passing_score <= max_score and
        every objective question has a usable answer key.
        """
        self._validate(payload)
        total_points = sum(q.points for q in payload.questions)

        evaluation = Evaluation(
            title=payload.title,
            evaluation_type=payload.evaluation_type.value,
            max_score=total_points,
            passing_score=payload.passing_score,
            time_limit_minutes=payload.time_limit_minutes,
            allow_retake=payload.allow_retake,
            is_published=payload.is_published,
            available_from=payload.available_from,
            available_until=payload.available_until,
        )
        for position, q in enumerate(payload.questions):
            evaluation.questions.append(
                Question(
                    position=position,
                    question_type=q.question_type.value,
                    prompt=q.prompt,
                    points=q.points,
                    options=list(q.options) if q.options else None,
                    correct_answer=q.correct_answer if q.question_type.is_objective else None,
                )
            )

        self.db.add(evaluation)
        self.db.commit()
        self.db.refresh(evaluation)

        logger.info(
            "Created evaluation %s (%s questions, max_score=%s)",
            evaluation.id, len(payload.questions), total_points,
        )
        return to_view(evaluation)

    def _validate(self, payload: EvaluationCreate) -> None:
        total_points = sum(q.points for q in payload.questions)

        if payload.max_score is not None and payload.max_score != total_points:
            raise InvalidEvaluation(
                f"max_score {payload.max_score} does not match the question points total {total_points}"
            )
        if payload.passing_score > total_points:
            raise InvalidEvaluation(
                f"passing_score {payload.passing_score} exceeds max_score {total_points}"
            )
        if (
            payload.available_from is not None
            and payload.available_until is not None
            and ensure_utc(payload.available_from) >= ensure_utc(payload.available_until)
        ):
            raise InvalidEvaluation("available_from must be before available_until")

        for index, q in enumerate(payload.questions, start=1):
            valid, message = self.scorer.validate_question(
                q.question_type, q.options, q.correct_answer, q.points
            )
            if not valid:
                raise InvalidEvaluation(f"Question {index}: {message}")

    def _load(self, evaluation_id) -> Evaluation:
        evaluation = (
            self.db.query(Evaluation)
            .options(selectinload(Evaluation.questions))
            .filter(Evaluation.id == _as_uuid(evaluation_id))
            .first()
        )
        if not evaluation:
            raise EvaluationNotFound(f"Evaluation {evaluation_id} not found")
        return evaluation

    def get_view(self, evaluation_id) -> EvaluationView:
        return to_view(self._load(evaluation_id))

    def set_published(self, evaluation_id, published: bool) -> EvaluationView:
        evaluation = self._load(evaluation_id)
        evaluation.is_published = published
        self.db.commit()

        logger.info("Evaluation %s published=%s", evaluation.id, published)
        return to_view(evaluation)
