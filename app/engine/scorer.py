# app/engine/scorer.py

from typing import Any, Dict, List, Optional, Tuple
import re

from app.models.evaluation import QuestionType


TRUE_TOKENS = {"true", "vrai", "yes", "oui", "1"}
FALSE_TOKENS = {"false", "faux", "no", "non", "0"}


class EnhancedScorer:
    """
    PURE RULE-BASED SCORING ENGINE.

    Deterministic per-question scoring for the objective question types.
    No partial credit: an answer either matches the stored key and earns the
    question's full points, or earns zero.

    Used by the GradingEngine; short-answer and essay questions never reach
    this class, they wait for a human reviewer.
    """

    def _normalize_text(self, text: Any) -> str:
        """
        Normalize an option value for comparison.

        Rules:
        1. Convert to lowercase
        2. Collapse internal whitespace
        3. Trim whitespace
        Punctuation is significant ("C" and "C++" are different options).
        """
        if text is None:
            return ""
        if not isinstance(text, str):
            text = str(text)

        text = text.lower()
        text = re.sub(r'\s+', ' ', text)
        return text.strip()

    def _resolve_choice(self, answer: Any, options: List[str]) -> Optional[str]:
        """
        Map a submitted answer to an option value.

        Takers may send either the option text or its 0-based index.
        """
        if isinstance(answer, bool):
            return None
        if isinstance(answer, int):
            if 0 <= answer < len(options):
                return options[answer]
            return None
        if isinstance(answer, str):
            return answer
        return None

    def _parse_bool(self, value: Any) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        token = self._normalize_text(value)
        if token in TRUE_TOKENS:
            return True
        if token in FALSE_TOKENS:
            return False
        return None

    def score_choice(
        self,
        candidate_answer: Any,
        correct_answer: str,
        options: List[str],
        max_score: float,
    ) -> Dict[str, Any]:
        """
        Score a multiple choice question - BINARY RULE ONLY.

        Args:
            candidate_answer: Option text or option index, None if unanswered
            correct_answer: Option value marked correct
            options: Ordered option values
            max_score: Points of the question

        Returns:
            Dictionary with score, matched status and explanation
        """
        chosen = self._resolve_choice(candidate_answer, options)
        is_correct = (
            chosen is not None
            and self._normalize_text(chosen) == self._normalize_text(correct_answer)
        )

        return {
            "score": float(max_score) if is_correct else 0.0,
            "max_score": float(max_score),
            "matched": is_correct,
            "explanation": self._explain(candidate_answer, is_correct),
            "rule_engine": "binary_choice",
        }

    def score_true_false(
        self,
        candidate_answer: Any,
        correct_answer: Any,
        max_score: float,
    ) -> Dict[str, Any]:
        """Score a true/false question - BINARY RULE ONLY."""
        given = self._parse_bool(candidate_answer)
        expected = self._parse_bool(correct_answer)
        is_correct = given is not None and given == expected

        return {
            "score": float(max_score) if is_correct else 0.0,
            "max_score": float(max_score),
            "matched": is_correct,
            "explanation": self._explain(candidate_answer, is_correct),
            "rule_engine": "binary_true_false",
        }

    def _explain(self, candidate_answer: Any, is_correct: bool) -> str:
        if candidate_answer is None or candidate_answer == "":
            return "No answer given"
        if is_correct:
            return "Full credit for exact match"
        return "No credit for incorrect answer"

    def validate_question(
        self,
        question_type: QuestionType,
        options: Optional[List[str]],
        correct_answer: Any,
        points: int,
    ) -> Tuple[bool, str]:
        """
        Validate an answer key for rule-based scoring.

        Returns:
            (is_valid, error_message)
        """
        if points is None or points < 1:
            return False, "points must be at least 1"

        if question_type == QuestionType.MULTIPLE_CHOICE:
            if not options or len(options) < 2:
                return False, "Multiple choice questions need at least two options"

            normalized = [self._normalize_text(o) for o in options]
            if any(not o for o in normalized):
                return False, "Options must not be empty"
            if len(set(normalized)) != len(normalized):
                return False, "Options must be unique"

            if not isinstance(correct_answer, str):
                return False, "correct_answer must be one of the options"
            if self._normalize_text(correct_answer) not in normalized:
                return False, "correct_answer must be one of the options"

        elif question_type == QuestionType.TRUE_FALSE:
            if self._parse_bool(correct_answer) is None:
                return False, "correct_answer must be true or false"

        return True, "Question is valid"
