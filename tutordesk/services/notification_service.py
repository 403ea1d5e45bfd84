from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

import httpx
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.constants import DISPLAY_DATE_FORMAT, DISPLAY_TIME_FORMAT
from ..core.timeutils import as_utc, local_tz, utc_now
from ..db import models

logger = logging.getLogger(__name__)


def format_session_date(starts_at: datetime) -> str:
    return as_utc(starts_at).astimezone(local_tz()).strftime(DISPLAY_DATE_FORMAT)


def format_session_time(starts_at: datetime) -> str:
    return as_utc(starts_at).astimezone(local_tz()).strftime(DISPLAY_TIME_FORMAT)


def admin_ids(db: Session) -> list[int]:
    rows = (
        db.query(models.User.id)
        .filter(models.User.role == models.UserRole.admin)
        .filter(models.User.is_active.is_(True))
        .all()
    )
    return [row[0] for row in rows]


def notify(
    db: Session,
    user_ids: Iterable[int],
    type: models.NotificationType,
    *,
    title: str,
    message: str,
    related_id: int | None = None,
    related_type: str | None = None,
) -> list[models.Notification]:
    created = []
    for user_id in dict.fromkeys(user_ids):
        notification = models.Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
            related_type=related_type,
        )
        db.add(notification)
        created.append(notification)
    return created


def deliver(notifications: list[models.Notification]) -> None:
    """Push committed notifications to the configured webhook."""
    if not notifications:
        return

    settings = get_settings()
    url = settings.notification_webhook_url
    if not url:
        logger.debug("Notification webhook is not configured; skipping delivery")
        return

    with httpx.Client(timeout=10) as client:
        for notification in notifications:
            try:
                response = client.post(
                    url,
                    json={
                        "id": notification.id,
                        "user_id": notification.user_id,
                        "type": notification.type.value,
                        "title": notification.title,
                        "message": notification.message,
                        "related_id": notification.related_id,
                        "related_type": notification.related_type,
                    },
                )
                response.raise_for_status()
            except httpx.HTTPError:
                logger.exception(
                    "Failed to deliver notification",
                    extra={"notification_id": notification.id, "user_id": notification.user_id},
                )


def mark_read(db: Session, notification: models.Notification) -> models.Notification:
    if notification.read_at is None:
        notification.read_at = utc_now()
        db.commit()
        db.refresh(notification)
    return notification


__all__ = [
    "admin_ids",
    "deliver",
    "format_session_date",
    "format_session_time",
    "mark_read",
    "notify",
]
