import os
import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import FileResponse

from app.api.deps import get_service, get_taker_id
from app.core.config import settings
from app.core.errors import SessionNotFound, UnknownQuestion
from app.reports.report_docx import generate_report_docx
from app.schemas.result import ResultRead
from app.schemas.session import (
    AttachmentResponse,
    DraftResponse,
    DraftSaveRequest,
    DraftSaveResponse,
    SessionStatusResponse,
    SubmissionResponse,
    SubmitRequest,
)
from app.services.evaluation_session import EvaluationSessionService
from app.services.sessions import SessionState

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def _session_uuid(session_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(session_id)
    except ValueError:
        raise SessionNotFound(f"Session {session_id} not found")


def _status_response(state: SessionState) -> SessionStatusResponse:
    remaining = state.time_remaining
    return SessionStatusResponse(
        session_id=state.session_id,
        evaluation_id=state.evaluation_id,
        status=state.status,
        time_remaining_seconds=int(remaining.total_seconds()) if remaining is not None else None,
        started_at=state.started_at,
        last_activity_at=state.last_activity_at,
        deadline=state.deadline,
        submitted_at=state.submitted_at,
    )


# -------------------------------------------------
# Status
# -------------------------------------------------

@router.get("/{session_id}/status", response_model=SessionStatusResponse)
def get_session_status(
    session_id: str,
    taker_id: str = Depends(get_taker_id),
    service: EvaluationSessionService = Depends(get_service),
):
    return _status_response(service.get_status(_session_uuid(session_id), taker_id))


@router.post("/{session_id}/activity", response_model=SessionStatusResponse)
def record_activity(
    session_id: str,
    taker_id: str = Depends(get_taker_id),
    service: EvaluationSessionService = Depends(get_service),
):
    return _status_response(service.record_activity(_session_uuid(session_id), taker_id))


# -------------------------------------------------
# Drafts
# -------------------------------------------------

@router.put("/{session_id}/drafts/{question_id}", response_model=DraftSaveResponse)
def save_draft(
    session_id: str,
    question_id: str,
    payload: DraftSaveRequest,
    taker_id: str = Depends(get_taker_id),
    service: EvaluationSessionService = Depends(get_service),
):
    session_uuid = _session_uuid(session_id)
    try:
        question_uuid = uuid.UUID(question_id)
    except ValueError:
        raise UnknownQuestion(f"Question {question_id} is not part of this evaluation")

    service.save_draft(session_uuid, question_uuid, payload.answer, taker_id)
    return DraftSaveResponse(session_id=session_uuid, question_id=question_uuid)


@router.get("/{session_id}/drafts", response_model=DraftResponse)
def load_draft(
    session_id: str,
    taker_id: str = Depends(get_taker_id),
    service: EvaluationSessionService = Depends(get_service),
):
    session_uuid = _session_uuid(session_id)
    return DraftResponse(
        session_id=session_uuid,
        answers=service.load_draft(session_uuid, taker_id),
    )


# -------------------------------------------------
# Attachments
# -------------------------------------------------

@router.post("/{session_id}/attachments", response_model=AttachmentResponse, status_code=201)
def upload_attachment(
    session_id: str,
    file: UploadFile = File(...),
    taker_id: str = Depends(get_taker_id),
    service: EvaluationSessionService = Depends(get_service),
):
    # Read one byte past the limit so oversized files are rejected, not truncated
    content = file.file.read(settings.MAX_ATTACHMENT_BYTES + 1)
    stored = service.upload_attachment(
        _session_uuid(session_id),
        filename=file.filename or "attachment",
        content=content,
        content_type=file.content_type or "application/octet-stream",
        taker_id=taker_id,
    )
    return AttachmentResponse(
        reference=stored.reference,
        filename=stored.filename,
        content_type=stored.content_type,
        size=stored.size,
        sha256=stored.sha256,
    )


# -------------------------------------------------
# Submit
# -------------------------------------------------

@router.post("/{session_id}/submit", response_model=SubmissionResponse)
def submit_session(
    session_id: str,
    payload: SubmitRequest,
    taker_id: str = Depends(get_taker_id),
    service: EvaluationSessionService = Depends(get_service),
):
    submission, result = service.submit(
        _session_uuid(session_id),
        answers=payload.answers,
        attachments=payload.attachments,
        taker_id=taker_id,
    )
    return SubmissionResponse(
        submission_id=submission.id,
        session_id=submission.session_id,
        result_id=result.id,
        submitted_at=submission.submitted_at,
        score=result.score,
        max_score=result.max_score,
        percentage=result.percentage,
        passed=result.passed,
        provisional=result.provisional,
    )


# -------------------------------------------------
# Result (JSON view or DOCX download)
# -------------------------------------------------

@router.get("/{session_id}/result", response_model=ResultRead)
def get_result(
    session_id: str,
    download: bool = Query(False, description="Set true to download the report"),
    taker_id: str = Depends(get_taker_id),
    service: EvaluationSessionService = Depends(get_service),
):
    result = service.get_result(_session_uuid(session_id), taker_id)
    report = service.result_report(result)

    if download:
        os.makedirs(settings.REPORTS_DIR, exist_ok=True)
        file_path = os.path.join(settings.REPORTS_DIR, f"result_{result.id}.docx")
        generate_report_docx(report, file_path)
        return FileResponse(
            path=file_path,
            filename=os.path.basename(file_path),
            media_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        )

    return report
