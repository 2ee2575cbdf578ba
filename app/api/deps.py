from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.engine.clock import SystemClock
from app.services.evaluation_session import EvaluationSessionService
from app.services.notifications import LoggingNotifier
from app.services.storage import LocalAttachmentStorage


def get_clock():
    return SystemClock()


def get_storage():
    return LocalAttachmentStorage(settings.ATTACHMENTS_DIR, settings.MAX_ATTACHMENT_BYTES)


def get_notifier():
    return LoggingNotifier()


def get_service(
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    storage=Depends(get_storage),
    notifier=Depends(get_notifier),
) -> EvaluationSessionService:
    return EvaluationSessionService(
        db,
        storage=storage,
        notifier=notifier,
        clock=clock,
        settings=settings,
    )


def get_taker_id(x_taker_id: str = Header(..., min_length=1)) -> str:
    """Opaque taker reference; authentication happens upstream."""
    return x_taker_id
