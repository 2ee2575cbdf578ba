# app/engine/views.py

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Tuple

from app.models.evaluation import QuestionType


@dataclass(frozen=True)
class QuestionView:
    """Read-only answer key of one question."""
    id: str
    position: int
    question_type: QuestionType
    prompt: str
    points: int
    options: Tuple[str, ...] = ()
    correct_answer: Any = None

    @property
    def is_objective(self) -> bool:
        return self.question_type.is_objective


@dataclass(frozen=True)
class EvaluationView:
    """
    Immutable snapshot of an evaluation as the session engine sees it.

    Built by the catalogue; grading only ever reads from this view, so an
    answer key cannot change underneath a running grade.
    """
    id: str
    title: str
    evaluation_type: str
    max_score: int
    passing_score: int
    time_limit_minutes: Optional[int]
    allow_retake: bool
    is_published: bool
    available_from: Optional[datetime]
    available_until: Optional[datetime]
    questions: Tuple[QuestionView, ...]

    def question(self, question_id: str) -> Optional[QuestionView]:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None
