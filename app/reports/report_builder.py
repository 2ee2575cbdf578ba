from datetime import datetime, timezone
from typing import Any, Dict, List

from app.engine.clock import ensure_utc
from app.engine.grading_engine import grade_mention
from app.engine.views import EvaluationView


def build_result_report(
    evaluation: EvaluationView,
    result,
    submission,
    include_answer_key: bool = True,
) -> Dict[str, Any]:
    """
    Assemble the taker-facing view of a graded submission.

    The answer key of objective questions is only shown when
    include_answer_key is set.
    """
    entries = {entry["question_id"]: entry for entry in result.question_breakdown}
    answers = submission.answers or {}

    # -------------------------
    # STATUS
    # -------------------------
    if result.provisional:
        status = "Pending review"
    elif result.passed:
        status = "Pass"
    else:
        status = "Fail"

    # -------------------------
    # PER-QUESTION DETAILS
    # -------------------------
    details: List[Dict[str, Any]] = []
    pending = 0

    for question in evaluation.questions:
        entry = entries.get(question.id, {})
        if entry.get("status") == "pending":
            pending += 1

        detail = {
            "question_id": question.id,
            "position": question.position,
            "question": question.prompt,
            "type": question.question_type.value,
            "answer": answers.get(question.id),
            "score": entry.get("awarded"),
            "max_score": question.points,
            "status": entry.get("status"),
            "feedback": entry.get("feedback") or None,
        }
        if include_answer_key and question.is_objective:
            detail["correct_answer"] = question.correct_answer
        details.append(detail)

    # -------------------------
    # SUMMARY
    # -------------------------
    summary = [
        f"Score: {result.score:g} out of {result.max_score:g} graded points ({result.percentage}%).",
        f"Grade {result.grade} ({grade_mention(result.percentage)}).",
    ]
    if result.provisional:
        summary.append(
            f"{pending} question(s) await manual review; the score is provisional."
        )
    else:
        summary.append(
            f"Passing score is {evaluation.passing_score} of {evaluation.max_score}: {status.lower()}."
        )
    if submission.attachments:
        summary.append(f"{len(submission.attachments)} attachment(s) submitted.")

    return {
        "result_id": str(result.id),
        "session_id": str(result.session_id),
        "evaluation": {
            "id": evaluation.id,
            "title": evaluation.title,
            "type": evaluation.evaluation_type,
        },
        "scores": {
            "score": result.score,
            "max_score": result.max_score,
            "percentage": result.percentage,
            "grade": result.grade,
            "mention": grade_mention(result.percentage),
            "passed": result.passed,
            "provisional": result.provisional,
            "status": status,
        },
        "summary": summary,
        "details": details,
        "attachments": list(submission.attachments or []),
        "submitted_at": ensure_utc(submission.submitted_at).isoformat(),
        "engine_version": result.engine_version,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
