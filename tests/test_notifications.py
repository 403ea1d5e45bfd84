import json
import logging
from datetime import datetime, timezone

import httpx

from tutordesk.config import Settings
from tutordesk.db import models
from tutordesk.services import notification_service


def _use_webhook(monkeypatch, handler, url="https://hooks.example.com/tutordesk"):
    settings = Settings(NOTIFICATION_WEBHOOK_URL=url)
    monkeypatch.setattr(notification_service, "get_settings", lambda: settings)
    real_client = httpx.Client

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(notification_service.httpx, "Client", client_factory)


def _stored(db, people):
    created = notification_service.notify(
        db,
        [people.admin.id, people.admin.id, people.tutor.id],
        models.NotificationType.schedule_changed,
        title="Session rescheduled",
        message="Sam's session has moved.",
        related_id=7,
        related_type="session_occurrence",
    )
    db.commit()
    return created


def test_notify_deduplicates_recipients(db_session, people):
    created = _stored(db_session, people)

    assert [n.user_id for n in created] == [people.admin.id, people.tutor.id]
    assert db_session.query(models.Notification).count() == 2


def test_admin_ids_skip_inactive_admins(db_session, people):
    retired = models.User(
        email="old-admin@example.com",
        password_hash="x",
        role=models.UserRole.admin,
        is_active=False,
    )
    db_session.add(retired)
    db_session.commit()

    assert notification_service.admin_ids(db_session) == [people.admin.id]


def test_deliver_posts_each_notification(db_session, people, monkeypatch):
    sent = []

    def handler(request):
        sent.append(json.loads(request.content))
        return httpx.Response(204)

    _use_webhook(monkeypatch, handler)
    created = _stored(db_session, people)

    notification_service.deliver(created)

    assert [item["user_id"] for item in sent] == [people.admin.id, people.tutor.id]
    assert sent[0]["type"] == "schedule_changed"
    assert sent[0]["related_type"] == "session_occurrence"


def test_delivery_failure_is_logged(db_session, people, monkeypatch, caplog):
    def handler(request):
        return httpx.Response(500)

    _use_webhook(monkeypatch, handler)
    created = _stored(db_session, people)

    with caplog.at_level(logging.ERROR):
        notification_service.deliver(created)

    assert "Failed to deliver notification" in caplog.text
    assert db_session.query(models.Notification).count() == 2


def test_deliver_without_webhook_does_nothing(db_session, people, monkeypatch):
    settings = Settings()
    monkeypatch.setattr(notification_service, "get_settings", lambda: settings)

    def fail(**kwargs):
        raise AssertionError("webhook must not be called")

    monkeypatch.setattr(notification_service.httpx, "Client", fail)

    notification_service.deliver(_stored(db_session, people))


def test_mark_read_is_stable(db_session, people):
    note = _stored(db_session, people)[0]

    first = notification_service.mark_read(db_session, note).read_at
    second = notification_service.mark_read(db_session, note).read_at

    assert first is not None
    assert first == second


def test_date_formatting_uses_local_time():
    starts_at = datetime(2024, 7, 5, 14, 0, tzinfo=timezone.utc)

    assert notification_service.format_session_date(starts_at) == "05/07/2024"
    assert notification_service.format_session_time(starts_at) == "15:00"
