from fastapi import APIRouter, Depends

from app.api.deps import get_service
from app.schemas.result import ManualGradeRequest, ResultRead
from app.services.evaluation_session import EvaluationSessionService

router = APIRouter(prefix="/results", tags=["Results"])


@router.put("/{result_id}/questions/{question_id}/grade", response_model=ResultRead)
def record_manual_grade(
    result_id: str,
    question_id: str,
    payload: ManualGradeRequest,
    service: EvaluationSessionService = Depends(get_service),
):
    """
    Reviewer endpoint for short-answer and essay questions.

    Once every question carries a score the result stops being provisional.
    """
    result = service.record_manual_grade(result_id, question_id, payload.score, payload.feedback)
    return service.result_report(result, reviewer=True)
