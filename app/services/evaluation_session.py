# app/services/evaluation_session.py
"""
Evaluation session service.

Façade over the catalogue, session manager, draft store, grading and the
external collaborators (attachment storage, notifier). It only composes:
expiry is re-checked by the session manager before every write, attachments
are confirmed durable before a submission may reference them, and drafts are
merged before the submission is frozen.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import Settings, settings as default_settings
from app.core.errors import AttachmentRejected, EvaluationSessionError
from app.engine.clock import SystemClock
from app.engine.grading_engine import GradingEngine
from app.engine.views import EvaluationView
from app.models.result import Result
from app.models.session import EvaluationSession, Submission
from app.reports.report_builder import build_result_report
from app.schemas.evaluation import EvaluationStats
from app.services.catalogue import EvaluationCatalogue
from app.services.drafts import DraftStore
from app.services.notifications import LoggingNotifier, Notifier
from app.services.results import ResultsService
from app.services.sessions import SessionManager, SessionState
from app.services.storage import AttachmentStorage, LocalAttachmentStorage, StoredAttachment

logger = logging.getLogger(__name__)


class EvaluationSessionService:
    def __init__(
        self,
        db: Session,
        catalogue: Optional[EvaluationCatalogue] = None,
        storage: Optional[AttachmentStorage] = None,
        notifier: Optional[Notifier] = None,
        clock=None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.clock = clock or SystemClock()

        self.catalogue = catalogue or EvaluationCatalogue(db)
        self.storage = storage or LocalAttachmentStorage(
            self.settings.ATTACHMENTS_DIR, self.settings.MAX_ATTACHMENT_BYTES
        )
        self.notifier = notifier or LoggingNotifier()

        grading = GradingEngine()
        self.drafts = DraftStore(db, clock=self.clock)
        self.results = ResultsService(db, self.catalogue, grading=grading, clock=self.clock)
        self.sessions = SessionManager(
            db,
            self.catalogue,
            self.drafts,
            self.results,
            grading=grading,
            clock=self.clock,
            idle_timeout_minutes=self.settings.IDLE_TIMEOUT_MINUTES,
        )

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    def start(self, evaluation_id, taker_id: str) -> Tuple[EvaluationSession, EvaluationView, bool]:
        evaluation = self.catalogue.get_view(evaluation_id)
        session, created = self.sessions.start_session(evaluation, taker_id)
        return session, evaluation, created

    def get_status(self, session_id, taker_id: Optional[str] = None) -> SessionState:
        return self.sessions.get_status(session_id, taker_id)

    def record_activity(self, session_id, taker_id: Optional[str] = None) -> SessionState:
        self.sessions.record_activity(session_id, taker_id)
        return self.sessions.get_status(session_id, taker_id)

    # -------------------------------------------------
    # Drafts
    # -------------------------------------------------

    def save_draft(self, session_id, question_id, answer: Any, taker_id: Optional[str] = None) -> None:
        self.sessions.save_draft(session_id, question_id, answer, taker_id)

    def load_draft(self, session_id, taker_id: Optional[str] = None) -> Dict[str, Any]:
        return self.sessions.load_answers(session_id, taker_id)

    # -------------------------------------------------
    # Attachments
    # -------------------------------------------------

    def upload_attachment(
        self,
        session_id,
        filename: str,
        content: bytes,
        content_type: str,
        taker_id: Optional[str] = None,
    ) -> StoredAttachment:
        # Uploads are writes too: an expired session cannot collect files
        self.sessions.record_activity(session_id, taker_id)
        return self.storage.save(filename, content, content_type)

    # -------------------------------------------------
    # Submit & results
    # -------------------------------------------------

    def submit(
        self,
        session_id,
        answers: Optional[Mapping[str, Any]] = None,
        attachments: Optional[List[str]] = None,
        taker_id: Optional[str] = None,
    ) -> Tuple[Submission, Result]:
        attachments = list(attachments or [])
        try:
            if len(attachments) > self.settings.MAX_ATTACHMENTS:
                raise AttachmentRejected(
                    f"{len(attachments)} attachments given, limit is {self.settings.MAX_ATTACHMENTS}"
                )
            confirmed = self.storage.confirm(attachments)
            submission, result = self.sessions.submit(session_id, answers, confirmed, taker_id)
        except EvaluationSessionError as exc:
            self._notify_failure(session_id, exc)
            raise

        self._notify_success(session_id, submission, result)
        return submission, result

    def get_result(self, session_id, taker_id: Optional[str] = None) -> Result:
        state = self.sessions.get_status(session_id, taker_id)
        return self.results.for_session(state.session_id)

    def result_report(self, result: Result, reviewer: bool = False) -> Dict[str, Any]:
        """
        Report view of a result. Takers only see the answer key when the
        evaluation cannot be attempted again.
        """
        evaluation = self.catalogue.get_view(result.evaluation_id)
        submission = self.db.get(Submission, result.submission_id)
        return build_result_report(
            evaluation,
            result,
            submission,
            include_answer_key=reviewer or not evaluation.allow_retake,
        )

    def record_manual_grade(self, result_id, question_id, score: float, feedback: str = "") -> Result:
        return self.results.record_manual_grade(result_id, question_id, score, feedback)

    def evaluation_stats(self, evaluation_id) -> EvaluationStats:
        return self.results.evaluation_stats(evaluation_id)

    # -------------------------------------------------
    # Notifications (side consumer, never fails the call)
    # -------------------------------------------------

    def _notify_success(self, session_id, submission, result) -> None:
        try:
            session = self.db.get(EvaluationSession, submission.session_id)
            self.notifier.submission_succeeded(session, submission, result)
        except Exception:
            logger.exception("Notifier failed after submit of session %s", session_id)

    def _notify_failure(self, session_id, error: Exception) -> None:
        try:
            self.notifier.submission_failed(session_id, error)
        except Exception:
            logger.exception("Notifier failed for session %s", session_id)
