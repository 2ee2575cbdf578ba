# app/services/sessions.py
"""
Session manager: sole owner of evaluation session status transitions.

    ACTIVE ──(now >= started_at + time limit, or idle)──> EXPIRED
    ACTIVE ──(submit)──> SUBMITTED   (exactly once, then immutable)

Expiry is detected, never scheduled: every operation re-checks the deadline
against the server clock before doing anything else, so the engine stays
correct across restarts and disappearing clients. Both transitions are
compare-and-swap updates on the status column.
"""

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    AlreadyAttempted,
    NotAvailable,
    SessionAlreadySubmitted,
    SessionExpired,
    SessionNotFound,
    UnknownQuestion,
)
from app.engine.clock import (
    SystemClock,
    deadline_for,
    ensure_utc,
    is_idle,
    is_past_deadline,
    time_remaining,
)
from app.engine.grading_engine import GradingEngine
from app.engine.views import EvaluationView
from app.models.result import Result
from app.models.session import EvaluationSession, SessionStatus, Submission
from app.services.drafts import DraftStore
from app.services.results import ResultsService

logger = logging.getLogger(__name__)

ACTIVE = SessionStatus.ACTIVE.value
EXPIRED = SessionStatus.EXPIRED.value
SUBMITTED = SessionStatus.SUBMITTED.value


@dataclass(frozen=True)
class SessionState:
    session_id: uuid.UUID
    evaluation_id: uuid.UUID
    status: SessionStatus
    started_at: datetime
    last_activity_at: datetime
    deadline: Optional[datetime]
    # None = untimed
    time_remaining: Optional[timedelta]
    submitted_at: Optional[datetime] = None


def submission_fingerprint(answers: Mapping[str, Any], attachments: List[str]) -> str:
    """Stable hash of an explicit submit payload."""
    payload = json.dumps(
        {"answers": answers, "attachments": sorted(attachments)},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class SessionManager:
    def __init__(
        self,
        db: Session,
        catalogue,
        drafts: DraftStore,
        results: ResultsService,
        grading: GradingEngine = None,
        clock=None,
        idle_timeout_minutes: Optional[int] = None,
    ):
        self.db = db
        self.catalogue = catalogue
        self.drafts = drafts
        self.results = results
        self.grading = grading or GradingEngine()
        self.clock = clock or SystemClock()
        self.idle_timeout_minutes = idle_timeout_minutes

    # ------------------------------------------------------------
    # Loading & lazy expiry
    # ------------------------------------------------------------

    def _load(self, session_id, taker_id: Optional[str] = None) -> EvaluationSession:
        try:
            key = session_id if isinstance(session_id, uuid.UUID) else uuid.UUID(str(session_id))
        except ValueError:
            raise SessionNotFound(f"Session {session_id} not found")

        session = self.db.get(EvaluationSession, key, populate_existing=True)
        # Sessions of other takers are reported as missing
        if session is None or (taker_id is not None and session.taker_id != taker_id):
            raise SessionNotFound(f"Session {session_id} not found")
        return session

    def _refresh(
        self,
        session: EvaluationSession,
        evaluation: EvaluationView,
        now: datetime,
    ) -> EvaluationSession:
        """Move an ACTIVE session past its deadline (or idle limit) to EXPIRED."""
        if session.status != ACTIVE:
            return session

        overdue = is_past_deadline(session.started_at, evaluation.time_limit_minutes, now)
        idle = is_idle(session.last_activity_at, self.idle_timeout_minutes, now)
        if not (overdue or idle):
            return session

        flipped = self.db.execute(
            update(EvaluationSession)
            .where(EvaluationSession.id == session.id)
            .where(EvaluationSession.status == ACTIVE)
            .values(status=EXPIRED, expired_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        self.db.commit()
        self.db.refresh(session)

        if flipped:
            logger.info(
                "Session %s expired (%s)", session.id, "deadline passed" if overdue else "idle timeout"
            )
        return session

    def _open(self, session_id, taker_id, now) -> Tuple[EvaluationSession, EvaluationView]:
        session = self._load(session_id, taker_id)
        evaluation = self.catalogue.get_view(session.evaluation_id)
        return self._refresh(session, evaluation, now), evaluation

    def _terminal_error(self, session: EvaluationSession) -> Exception:
        if session.status == EXPIRED:
            return SessionExpired(f"Session {session.id} has expired")
        return SessionAlreadySubmitted(f"Session {session.id} was already submitted")

    def _require_active(self, session: EvaluationSession) -> None:
        if session.status == SUBMITTED:
            raise SessionAlreadySubmitted(f"Session {session.id} was already submitted")
        if session.status == EXPIRED:
            raise SessionExpired(f"Session {session.id} has expired")

    # ------------------------------------------------------------
    # Start
    # ------------------------------------------------------------

    def _active_for(self, evaluation_id: uuid.UUID, taker_id: str) -> Optional[EvaluationSession]:
        return (
            self.db.query(EvaluationSession)
            .filter(
                EvaluationSession.evaluation_id == evaluation_id,
                EvaluationSession.taker_id == taker_id,
                EvaluationSession.status == ACTIVE,
            )
            .populate_existing()
            .first()
        )

    def start_session(
        self,
        evaluation: EvaluationView,
        taker_id: str,
    ) -> Tuple[EvaluationSession, bool]:
        """
        Start (or resume) the taker's attempt.

        Returns:
            (session, created) - created is False when an ACTIVE session
            already existed and is handed back instead of a duplicate
        """
        now = self.clock.now()
        evaluation_uuid = uuid.UUID(evaluation.id)

        active = self._active_for(evaluation_uuid, taker_id)
        if active is not None:
            self._refresh(active, evaluation, now)
            if active.status == ACTIVE:
                logger.info("Resuming active session %s for taker %s", active.id, taker_id)
                return active, False

        if not evaluation.is_published:
            raise NotAvailable(f"Evaluation {evaluation.id} is not published")
        if evaluation.available_from is not None and now < evaluation.available_from:
            raise NotAvailable(
                f"Evaluation {evaluation.id} opens at {evaluation.available_from.isoformat()}"
            )
        if evaluation.available_until is not None and now >= evaluation.available_until:
            raise NotAvailable(
                f"Evaluation {evaluation.id} closed at {evaluation.available_until.isoformat()}"
            )

        if not evaluation.allow_retake:
            attempted = (
                self.db.query(EvaluationSession.id)
                .filter(
                    EvaluationSession.evaluation_id == evaluation_uuid,
                    EvaluationSession.taker_id == taker_id,
                    EvaluationSession.status == SUBMITTED,
                )
                .first()
            )
            if attempted:
                logger.warning(
                    "Taker %s already attempted evaluation %s", taker_id, evaluation.id
                )
                raise AlreadyAttempted(
                    f"Evaluation {evaluation.id} does not allow retakes"
                )

        session = EvaluationSession(
            evaluation_id=evaluation_uuid,
            taker_id=taker_id,
            status=ACTIVE,
            started_at=now,
            last_activity_at=now,
        )
        self.db.add(session)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent start won the unique ACTIVE slot
            self.db.rollback()
            winner = self._active_for(evaluation_uuid, taker_id)
            if winner is None:
                raise
            return winner, False

        self.db.refresh(session)
        logger.info(
            "Started session %s for taker %s on evaluation %s", session.id, taker_id, evaluation.id
        )
        return session, True

    # ------------------------------------------------------------
    # Status & activity
    # ------------------------------------------------------------

    def get_status(self, session_id, taker_id: Optional[str] = None) -> SessionState:
        now = self.clock.now()
        session, evaluation = self._open(session_id, taker_id, now)

        remaining = time_remaining(session.started_at, evaluation.time_limit_minutes, now)
        if session.status != ACTIVE:
            remaining = timedelta(0)

        return SessionState(
            session_id=session.id,
            evaluation_id=session.evaluation_id,
            status=SessionStatus(session.status),
            started_at=ensure_utc(session.started_at),
            last_activity_at=ensure_utc(session.last_activity_at),
            deadline=deadline_for(session.started_at, evaluation.time_limit_minutes),
            time_remaining=remaining,
            submitted_at=ensure_utc(session.submitted_at) if session.submitted_at else None,
        )

    def record_activity(self, session_id, taker_id: Optional[str] = None) -> EvaluationSession:
        now = self.clock.now()
        session, _ = self._open(session_id, taker_id, now)
        self._require_active(session)

        session.last_activity_at = now
        self.db.commit()
        return session

    # ------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------

    def save_draft(
        self,
        session_id,
        question_id,
        answer: Any,
        taker_id: Optional[str] = None,
    ) -> EvaluationSession:
        now = self.clock.now()
        session, evaluation = self._open(session_id, taker_id, now)
        self._require_active(session)

        if evaluation.question(str(question_id)) is None:
            raise UnknownQuestion(f"Question {question_id} is not part of this evaluation")

        try:
            # Row stays locked until commit; serialised with the submit CAS
            touched = self.db.execute(
                update(EvaluationSession)
                .where(EvaluationSession.id == session.id)
                .where(EvaluationSession.status == ACTIVE)
                .values(last_activity_at=now)
                .execution_options(synchronize_session=False)
            ).rowcount
            if touched != 1:
                raise _LostRace()

            self.drafts.save_draft(session.id, uuid.UUID(str(question_id)), answer, commit=False)
            self.db.commit()
        except _LostRace:
            self.db.rollback()
            self.db.refresh(session)
            raise self._terminal_error(session)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(session)
        return session

    def load_answers(self, session_id, taker_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Answers a submit would use right now; once submitted, the frozen
        submission's answers.
        """
        now = self.clock.now()
        session, _ = self._open(session_id, taker_id, now)

        if session.status == SUBMITTED:
            submission = self._submission_for(session.id)
            if submission is not None:
                return dict(submission.answers)
        return self.drafts.load_draft(session.id)

    # ------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------

    def _submission_for(self, session_id: uuid.UUID) -> Optional[Submission]:
        return (
            self.db.query(Submission)
            .filter(Submission.session_id == session_id)
            .first()
        )

    def submit(
        self,
        session_id,
        answers: Optional[Mapping[str, Any]] = None,
        attachments: Optional[List[str]] = None,
        taker_id: Optional[str] = None,
    ) -> Tuple[Submission, Result]:
        """
        Freeze the taker's answers and grade objective questions.

        Explicit answers win over drafts for the same question. Either the
        whole operation (merge, persist submission, flip status, grade,
        purge drafts) commits or none of it does.
        """
        now = self.clock.now()
        session, evaluation = self._open(session_id, taker_id, now)

        explicit = {str(k): v for k, v in (answers or {}).items()}
        attachments = list(attachments or [])
        for question_id in explicit:
            if evaluation.question(question_id) is None:
                raise UnknownQuestion(f"Question {question_id} is not part of this evaluation")

        fingerprint = submission_fingerprint(explicit, attachments)

        if session.status == SUBMITTED:
            existing = self._submission_for(session.id)
            if existing is not None and existing.fingerprint == fingerprint:
                logger.info("Duplicate submit for session %s treated as retry", session.id)
                return existing, self.results.for_session(session.id)
            raise SessionAlreadySubmitted(f"Session {session.id} was already submitted")
        self._require_active(session)

        try:
            merged = self.drafts.load_draft(session.id)
            merged.update(explicit)

            flipped = self.db.execute(
                update(EvaluationSession)
                .where(EvaluationSession.id == session.id)
                .where(EvaluationSession.status == ACTIVE)
                .values(status=SUBMITTED, submitted_at=now, last_activity_at=now)
                .execution_options(synchronize_session=False)
            ).rowcount
            if flipped != 1:
                raise _LostRace()

            submission = Submission(
                session_id=session.id,
                answers=merged,
                attachments=attachments,
                fingerprint=fingerprint,
                submitted_at=now,
            )
            self.db.add(submission)
            self.db.flush()

            outcome = self.grading.grade_objective(evaluation, submission)
            result = self.results.record(session, submission, outcome, graded_at=now)

            self.drafts.purge(session.id)
            self.db.commit()
        except _LostRace:
            self.db.rollback()
            self.db.refresh(session)
            raise self._terminal_error(session)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(session)
        logger.info(
            "Session %s submitted: %s/%s%s",
            session.id, result.score, result.max_score,
            " (provisional)" if result.provisional else "",
        )
        return submission, result


class _LostRace(Exception):
    """Status changed between the expiry check and the compare-and-swap."""
