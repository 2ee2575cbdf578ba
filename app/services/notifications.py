import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def submission_succeeded(self, session, submission, result) -> None:
        ...

    def submission_failed(self, session_id, error: Exception) -> None:
        ...


class LoggingNotifier:
    """Default notifier: the taker-facing channel is owned by the front end."""

    def submission_succeeded(self, session, submission, result) -> None:
        logger.info(
            "Notify taker %s: submission %s received (score %s/%s%s)",
            session.taker_id,
            submission.id,
            result.score,
            result.max_score,
            ", provisional" if result.provisional else "",
        )

    def submission_failed(self, session_id, error: Exception) -> None:
        logger.warning("Notify taker of session %s: submission failed (%s)", session_id, error)
