from fastapi import APIRouter, Depends, Response, status

from app.api.deps import get_service, get_taker_id
from app.engine.clock import deadline_for, ensure_utc
from app.engine.views import EvaluationView
from app.schemas.evaluation import (
    EvaluationCreate,
    EvaluationRead,
    EvaluationStats,
    PublishRequest,
    QuestionRead,
)
from app.schemas.session import StartSessionResponse
from app.services.evaluation_session import EvaluationSessionService

router = APIRouter(prefix="/evaluations", tags=["Evaluations"])


def _questions(view: EvaluationView):
    # FRONTEND-SAFE: no correct answers
    return [
        QuestionRead(
            id=q.id,
            position=q.position,
            prompt=q.prompt,
            question_type=q.question_type,
            points=q.points,
            options=list(q.options) if q.options else None,
        )
        for q in view.questions
    ]


def _evaluation_read(view: EvaluationView) -> EvaluationRead:
    return EvaluationRead(
        id=view.id,
        title=view.title,
        evaluation_type=view.evaluation_type,
        max_score=view.max_score,
        passing_score=view.passing_score,
        time_limit_minutes=view.time_limit_minutes,
        allow_retake=view.allow_retake,
        is_published=view.is_published,
        available_from=view.available_from,
        available_until=view.available_until,
        questions=_questions(view),
    )


@router.post("", response_model=EvaluationRead, status_code=status.HTTP_201_CREATED)
def create_evaluation(
    payload: EvaluationCreate,
    service: EvaluationSessionService = Depends(get_service),
):
    return _evaluation_read(service.catalogue.create_evaluation(payload))


@router.get("/{evaluation_id}", response_model=EvaluationRead)
def get_evaluation(
    evaluation_id: str,
    service: EvaluationSessionService = Depends(get_service),
):
    return _evaluation_read(service.catalogue.get_view(evaluation_id))


@router.put("/{evaluation_id}/publish", response_model=EvaluationRead)
def publish_evaluation(
    evaluation_id: str,
    payload: PublishRequest,
    service: EvaluationSessionService = Depends(get_service),
):
    return _evaluation_read(service.catalogue.set_published(evaluation_id, payload.published))


@router.get("/{evaluation_id}/stats", response_model=EvaluationStats)
def evaluation_stats(
    evaluation_id: str,
    service: EvaluationSessionService = Depends(get_service),
):
    return service.evaluation_stats(evaluation_id)


@router.post("/{evaluation_id}/start", response_model=StartSessionResponse)
def start_evaluation(
    evaluation_id: str,
    response: Response,
    taker_id: str = Depends(get_taker_id),
    service: EvaluationSessionService = Depends(get_service),
):
    session, evaluation, created = service.start(evaluation_id, taker_id)

    # Re-entry hands back the running attempt
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK

    return StartSessionResponse(
        session_id=session.id,
        evaluation_id=session.evaluation_id,
        status=session.status,
        started_at=ensure_utc(session.started_at),
        time_limit_minutes=evaluation.time_limit_minutes,
        deadline=deadline_for(session.started_at, evaluation.time_limit_minutes),
        resumed=not created,
        questions=_questions(evaluation),
    )
