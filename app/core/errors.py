# app/core/errors.py
"""
Domain errors raised by the evaluation session engine.

Every error carries the HTTP status the API layer answers with and a stable
machine-readable code. Expired and already-submitted sessions are expected,
user-facing conditions: they are surfaced as-is and never retried internally.
"""


class EvaluationSessionError(Exception):
    status_code: int = 400
    code: str = "evaluation_session_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self)


# -------------------------------------------------
# Lookups
# -------------------------------------------------

class EvaluationNotFound(EvaluationSessionError):
    """Evaluation not found"""
    status_code = 404
    code = "evaluation_not_found"


class SessionNotFound(EvaluationSessionError):
    """Session not found"""
    status_code = 404
    code = "session_not_found"


class ResultNotFound(EvaluationSessionError):
    """Result not found"""
    status_code = 404
    code = "result_not_found"


# -------------------------------------------------
# Session lifecycle
# -------------------------------------------------

class NotAvailable(EvaluationSessionError):
    """Evaluation is not available"""
    status_code = 403
    code = "not_available"


class AlreadyAttempted(EvaluationSessionError):
    """Evaluation already attempted and retakes are not allowed"""
    status_code = 409
    code = "already_attempted"


class SessionExpired(EvaluationSessionError):
    """Session time limit has passed"""
    status_code = 410
    code = "session_expired"


class SessionAlreadySubmitted(EvaluationSessionError):
    """Session already submitted"""
    status_code = 409
    code = "session_already_submitted"


# -------------------------------------------------
# Validation
# -------------------------------------------------

class InvalidEvaluation(EvaluationSessionError):
    """Evaluation definition is invalid"""
    status_code = 422
    code = "invalid_evaluation"


class UnknownQuestion(EvaluationSessionError):
    """Question does not belong to this evaluation"""
    status_code = 422
    code = "unknown_question"


class ScoreOutOfRange(EvaluationSessionError):
    """Score is outside the question's point range"""
    status_code = 422
    code = "score_out_of_range"


class NotManuallyGradable(EvaluationSessionError):
    """Question is graded automatically"""
    status_code = 422
    code = "not_manually_gradable"


class ResultConflict(EvaluationSessionError):
    """Result kept changing while a manual grade was being recorded"""
    status_code = 409
    code = "result_conflict"


# -------------------------------------------------
# Attachments
# -------------------------------------------------

class AttachmentRejected(EvaluationSessionError):
    """Attachment exceeds the configured limits"""
    status_code = 413
    code = "attachment_rejected"


class AttachmentStorageFailure(EvaluationSessionError):
    """Attachment could not be stored durably"""
    status_code = 502
    code = "attachment_storage_failure"
