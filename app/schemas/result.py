# app/schemas/result.py

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ManualGradeRequest(BaseModel):
    # range is checked against the question's points by the grading engine
    score: float
    feedback: str = Field("", max_length=500)


class QuestionResultRead(BaseModel):
    question_id: UUID
    position: int
    question: str
    type: str
    answer: Any = None
    correct_answer: Any = None
    score: Optional[float] = None
    max_score: float
    status: Optional[str] = None
    feedback: Optional[str] = None


class ScoresRead(BaseModel):
    score: float
    max_score: float
    percentage: float
    grade: str
    mention: str
    passed: bool
    provisional: bool
    status: str


class ResultRead(BaseModel):
    result_id: UUID
    session_id: UUID
    evaluation: Dict[str, Any]
    scores: ScoresRead
    summary: List[str]
    details: List[QuestionResultRead]
    attachments: List[str]
    submitted_at: str
    engine_version: str
