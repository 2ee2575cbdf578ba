# app/schemas/evaluation.py

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.evaluation import EvaluationType, QuestionType


# =========================
# Authoring (catalogue)
# =========================
class QuestionCreate(BaseModel):
    prompt: str = Field(..., min_length=1)
    question_type: QuestionType
    points: int = Field(..., ge=1)

    options: Optional[List[str]] = None
    correct_answer: Optional[Any] = None


class EvaluationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    evaluation_type: EvaluationType = EvaluationType.QUIZ

    questions: List[QuestionCreate] = Field(..., min_length=1)

    # Must equal the sum of question points when given
    max_score: Optional[int] = Field(None, ge=1)
    passing_score: int = Field(..., ge=0)

    time_limit_minutes: Optional[int] = Field(None, ge=1)
    allow_retake: bool = False

    is_published: bool = False
    available_from: Optional[datetime] = None
    available_until: Optional[datetime] = None


class PublishRequest(BaseModel):
    published: bool


# =========================
# Taker-safe views (no answer key)
# =========================
class QuestionRead(BaseModel):
    id: UUID
    position: int
    prompt: str
    question_type: QuestionType
    points: int
    options: Optional[List[str]] = None


class EvaluationRead(BaseModel):
    id: UUID
    title: str
    evaluation_type: EvaluationType
    max_score: int
    passing_score: int
    time_limit_minutes: Optional[int]
    allow_retake: bool
    is_published: bool
    available_from: Optional[datetime]
    available_until: Optional[datetime]
    questions: List[QuestionRead]


# =========================
# Statistics
# =========================
class EvaluationStats(BaseModel):
    evaluation_id: UUID
    total_submissions: int
    graded_submissions: int
    average_score: float
    average_percentage: float
    average_time_seconds: float
    pass_rate: float
    distribution: Dict[str, int]
    letter_grades: Dict[str, int]
