import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..core.constants import PENDING_REQUEST_REMINDER_WINDOW
from ..core.timeutils import utc_now
from ..db import models
from ..db.session import SessionLocal
from ..services import template_service

logger = logging.getLogger(__name__)


def extend_template_occurrences() -> None:
    with SessionLocal() as db:
        horizon = template_service.default_horizon()
        templates = (
            db.query(models.RecurringSessionTemplate)
            .filter(models.RecurringSessionTemplate.is_active.is_(True))
            .all()
        )
        for template in templates:
            created = template_service.generate_occurrences(db, template, horizon)
            if created:
                logger.info(
                    "Extended template occurrences",
                    extra={"template_id": template.id, "generated": len(created)},
                )


def remind_pending_change_requests() -> None:
    with SessionLocal() as db:
        now = utc_now()
        pending = (
            db.query(models.SessionChangeRequest)
            .join(models.SessionChangeRequest.occurrence)
            .filter(models.SessionChangeRequest.status == models.ChangeRequestStatus.pending)
            .filter(
                models.SessionOccurrence.start_datetime.between(
                    now, now + PENDING_REQUEST_REMINDER_WINDOW
                )
            )
            .all()
        )
        for request in pending:
            logger.info(
                "Pending change request for upcoming session",
                extra={"request_id": request.id, "occurrence_id": request.session_occurrence_id},
            )


def get_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(extend_template_occurrences, "interval", days=1)
    scheduler.add_job(remind_pending_change_requests, "interval", hours=1)
    return scheduler
