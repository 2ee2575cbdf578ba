# app/schemas/session.py

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.session import SessionStatus
from app.schemas.evaluation import QuestionRead


class StartSessionResponse(BaseModel):
    session_id: UUID
    evaluation_id: UUID
    status: SessionStatus
    started_at: datetime
    time_limit_minutes: Optional[int]
    deadline: Optional[datetime]
    resumed: bool
    questions: List[QuestionRead]


class SessionStatusResponse(BaseModel):
    session_id: UUID
    evaluation_id: UUID
    status: SessionStatus
    # None when the evaluation is untimed
    time_remaining_seconds: Optional[int]
    started_at: datetime
    last_activity_at: datetime
    deadline: Optional[datetime]
    submitted_at: Optional[datetime] = None


class DraftSaveRequest(BaseModel):
    """Answer value: free text, selected option (text or index), bool or file reference"""
    answer: Any = None


class DraftSaveResponse(BaseModel):
    message: str = "Draft saved"
    session_id: UUID
    question_id: UUID


class DraftResponse(BaseModel):
    session_id: UUID
    answers: Dict[str, Any]


class AttachmentResponse(BaseModel):
    reference: str
    filename: str
    content_type: str
    size: int
    sha256: str


class SubmitRequest(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[str] = Field(default_factory=list)


class SubmissionResponse(BaseModel):
    """Response after successful submission"""
    message: str = "Evaluation submitted successfully"
    submission_id: UUID
    session_id: UUID
    result_id: UUID
    submitted_at: datetime
    score: float
    max_score: float
    percentage: float
    passed: bool
    provisional: bool
    status: SessionStatus = SessionStatus.SUBMITTED
