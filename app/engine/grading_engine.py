# app/engine/grading_engine.py

"""
GRADING ENGINE

Turns a frozen submission into a result against an evaluation's answer key.

SCORING FLOW:
MULTIPLE CHOICE / TRUE-FALSE: rule scorer, full points or zero
SHORT ANSWER / ESSAY: pending until a reviewer records a manual grade

AGGREGATE:
score / max_score cover graded questions only; the result stays
provisional while any question is pending.

grade_objective is a pure function of (evaluation, submission): grading the
same pair twice yields identical outcomes.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
import logging

from app.core.errors import NotManuallyGradable, ScoreOutOfRange, UnknownQuestion
from app.engine.scorer import EnhancedScorer
from app.engine.views import EvaluationView, QuestionView
from app.models.evaluation import QuestionType

logger = logging.getLogger(__name__)


class GradeStatus(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    PENDING = "pending"
    GRADED = "graded"


@dataclass
class QuestionGrade:
    """Grade of a single question; awarded is None while pending."""
    question_id: str
    question_type: str
    status: str
    max_points: float
    awarded: Optional[float] = None
    feedback: str = ""

    @property
    def is_pending(self) -> bool:
        return self.status == GradeStatus.PENDING.value

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuestionGrade":
        return cls(
            question_id=data["question_id"],
            question_type=data["question_type"],
            status=data["status"],
            max_points=data["max_points"],
            awarded=data.get("awarded"),
            feedback=data.get("feedback", ""),
        )


@dataclass
class GradeOutcome:
    questions: List[QuestionGrade] = field(default_factory=list)
    score: float = 0.0
    max_score: float = 0.0
    percentage: float = 0.0
    passed: bool = False
    provisional: bool = False
    grade: str = "F"
    engine_version: str = ""

    def breakdown(self) -> List[Dict[str, Any]]:
        return [q.to_dict() for q in self.questions]


def letter_grade(percentage: float) -> str:
    if percentage >= 90:
        return "A"
    if percentage >= 80:
        return "B"
    if percentage >= 70:
        return "C"
    if percentage >= 60:
        return "D"
    return "F"


def grade_mention(percentage: float) -> str:
    if percentage >= 90:
        return "Excellent"
    if percentage >= 80:
        return "Très bien"
    if percentage >= 70:
        return "Bien"
    if percentage >= 60:
        return "Assez bien"
    if percentage >= 50:
        return "Passable"
    return "Insuffisant"


class GradingEngine:

    ENGINE_VERSION = "rule_v1.0_binary_objective"

    def __init__(self, scorer: Optional[EnhancedScorer] = None):
        self.rule_scorer = scorer or EnhancedScorer()

    # ------------------------------------------------------------
    # Objective grading
    # ------------------------------------------------------------

    def grade_objective(self, evaluation: EvaluationView, submission) -> GradeOutcome:
        """
        Grade every objective question of a submission.

        Args:
            evaluation: Immutable answer key view
            submission: Anything exposing an ``answers`` mapping of
                question id -> final answer

        Returns:
            GradeOutcome, provisional if any manual question exists
        """
        answers: Mapping[str, Any] = submission.answers or {}
        grades = [
            self._grade_question(question, answers.get(question.id))
            for question in evaluation.questions
        ]
        outcome = self.aggregate(evaluation, grades)

        logger.debug(
            "Graded evaluation %s: %s/%s provisional=%s",
            evaluation.id, outcome.score, outcome.max_score, outcome.provisional,
        )
        return outcome

    def _grade_question(self, question: QuestionView, answer: Any) -> QuestionGrade:
        if not question.is_objective:
            return QuestionGrade(
                question_id=question.id,
                question_type=question.question_type.value,
                status=GradeStatus.PENDING.value,
                max_points=float(question.points),
            )

        if question.question_type == QuestionType.MULTIPLE_CHOICE:
            scored = self.rule_scorer.score_choice(
                candidate_answer=answer,
                correct_answer=question.correct_answer,
                options=list(question.options),
                max_score=question.points,
            )
        else:
            scored = self.rule_scorer.score_true_false(
                candidate_answer=answer,
                correct_answer=question.correct_answer,
                max_score=question.points,
            )

        return QuestionGrade(
            question_id=question.id,
            question_type=question.question_type.value,
            status=(GradeStatus.CORRECT if scored["matched"] else GradeStatus.INCORRECT).value,
            max_points=scored["max_score"],
            awarded=scored["score"],
            feedback=scored["explanation"],
        )

    # ------------------------------------------------------------
    # Manual grading
    # ------------------------------------------------------------

    def apply_manual_grade(
        self,
        evaluation: EvaluationView,
        questions: List[QuestionGrade],
        question_id: str,
        score: float,
        feedback: str = "",
    ) -> GradeOutcome:
        """
        Record a reviewer's score for a short-answer or essay question and
        recompute the aggregate. Re-recording replaces the previous grade.
        """
        question = evaluation.question(question_id)
        if question is None:
            raise UnknownQuestion(f"Question {question_id} is not part of this evaluation")
        if question.is_objective:
            raise NotManuallyGradable(
                f"Question {question_id} is {question.question_type.value} and graded automatically"
            )
        if score < 0 or score > question.points:
            raise ScoreOutOfRange(
                f"Score {score} is outside 0..{question.points} for question {question_id}"
            )

        updated = [
            replace(
                grade,
                status=GradeStatus.GRADED.value,
                awarded=float(score),
                feedback=feedback or "",
            )
            if grade.question_id == question_id
            else grade
            for grade in questions
        ]
        return self.aggregate(evaluation, updated)

    # ------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------

    def aggregate(self, evaluation: EvaluationView, grades: List[QuestionGrade]) -> GradeOutcome:
        graded = [g for g in grades if not g.is_pending]
        provisional = len(graded) != len(grades)

        score = round(sum(g.awarded for g in graded), 2)
        max_score = round(sum(g.max_points for g in graded), 2)
        percentage = round((score / max_score) * 100, 2) if max_score else 0.0

        return GradeOutcome(
            questions=grades,
            score=score,
            max_score=max_score,
            percentage=percentage,
            passed=(not provisional) and score >= evaluation.passing_score,
            provisional=provisional,
            grade=letter_grade(percentage),
            engine_version=self.ENGINE_VERSION,
        )
