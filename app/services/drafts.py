# app/services/drafts.py
"""
Draft store: durable, frequently-overwritten in-progress answers.

Writes go through a single INSERT ... ON CONFLICT DO UPDATE on the
(session_id, question_id) key, so concurrent saves from several tabs are
serialised by the database and the last write to arrive wins. Client
timestamps are never trusted: saved_at comes from the server clock and
revision counts arrivals.
"""

import logging
import uuid
from typing import Any, Dict

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.engine.clock import SystemClock
from app.models.session import DraftAnswer

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class DraftStore:
    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or SystemClock()

    def save_draft(
        self,
        session_id: uuid.UUID,
        question_id: uuid.UUID,
        answer: Any,
        commit: bool = True,
    ) -> None:
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Draft upsert is not supported on {dialect}")

        now = self.clock.now()
        stmt = insert(DraftAnswer).values(
            session_id=session_id,
            question_id=question_id,
            answer=answer,
            revision=1,
            saved_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DraftAnswer.session_id, DraftAnswer.question_id],
            set_={
                "answer": stmt.excluded.answer,
                "saved_at": stmt.excluded.saved_at,
                "revision": DraftAnswer.revision + 1,
            },
        )
        self.db.execute(stmt)
        if commit:
            self.db.commit()

        logger.debug("Draft saved session=%s question=%s", session_id, question_id)

    def load_draft(self, session_id: uuid.UUID) -> Dict[str, Any]:
        rows = self.db.execute(
            select(DraftAnswer.question_id, DraftAnswer.answer)
            .where(DraftAnswer.session_id == session_id)
            .order_by(DraftAnswer.id)
        ).all()
        return {str(question_id): answer for question_id, answer in rows}

    def purge(self, session_id: uuid.UUID) -> int:
        """Drop drafts of a session; the caller owns the transaction."""
        result = self.db.execute(
            delete(DraftAnswer).where(DraftAnswer.session_id == session_id)
        )
        return result.rowcount or 0
