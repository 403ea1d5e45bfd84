from datetime import timedelta

import pytest

from tutordesk.core.timeutils import js_weekday, local_date, utc_now
from tutordesk.db import models


def _payload(api, **overrides):
    start = local_date(utc_now()) + timedelta(days=2)
    payload = {
        "tutor_id": api.people.tutor.id,
        "student_id": api.people.student.id,
        "day_of_week": js_weekday(start),
        "start_time": "9:30",
        "duration_minutes": 45,
        "subject": "Physics",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=14)).isoformat(),
    }
    payload.update(overrides)
    return payload


def test_create_template_with_generation(api_client):
    client = api_client.client

    response = client.post(
        "/api/v1/recurring-sessions", json=_payload(api_client, generate_occurrences=True)
    )

    assert response.status_code == 201
    template = response.json()
    assert template["start_time"] == "09:30"
    assert template["created_by"] == api_client.people.admin.id
    occurrences = client.get(
        "/api/v1/session-occurrences", params={"tutor_id": api_client.people.tutor.id}
    ).json()
    assert len(occurrences) == 3
    assert all(item["template_id"] == template["id"] for item in occurrences)
    assert all(item["pending_change_request"] is None for item in occurrences)


def test_generate_endpoint_is_idempotent(api_client):
    client = api_client.client
    template = client.post("/api/v1/recurring-sessions", json=_payload(api_client)).json()
    until = (local_date(utc_now()) + timedelta(days=30)).isoformat()

    first = client.post(f"/api/v1/recurring-sessions/{template['id']}/generate", json={"until": until})
    second = client.post(f"/api/v1/recurring-sessions/{template['id']}/generate", json={"until": until})

    assert first.status_code == 200
    assert first.json()["generated"] == 3
    assert len(first.json()["occurrences"]) == 3
    assert second.json() == {"generated": 0, "occurrences": []}


def test_template_validation(api_client):
    client = api_client.client

    assert client.post(
        "/api/v1/recurring-sessions", json=_payload(api_client, start_time="25:00")
    ).status_code == 422
    assert client.post(
        "/api/v1/recurring-sessions", json=_payload(api_client, day_of_week=7)
    ).status_code == 422
    response = client.post(
        "/api/v1/recurring-sessions",
        json=_payload(api_client, tutor_id=api_client.people.parent.id),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Tutor not found"
    assert client.post(
        "/api/v1/recurring-sessions", json=_payload(api_client, class_type="solo")
    ).status_code == 400


def test_delete_template_removes_occurrences(api_client):
    client = api_client.client
    template = client.post(
        "/api/v1/recurring-sessions", json=_payload(api_client, generate_occurrences=True)
    ).json()

    response = client.delete(f"/api/v1/recurring-sessions/{template['id']}")

    assert response.status_code == 204
    assert client.get(f"/api/v1/recurring-sessions/{template['id']}").status_code == 404
    with api_client.SessionLocal() as db:
        assert db.query(models.SessionOccurrence).count() == 0


def test_tutor_sees_only_own_templates(api_client):
    client = api_client.client
    own = client.post("/api/v1/recurring-sessions", json=_payload(api_client)).json()
    other = client.post(
        "/api/v1/recurring-sessions",
        json=_payload(api_client, tutor_id=api_client.people.other_tutor.id, student_id=None),
    ).json()

    api_client.current.user = api_client.people.tutor
    listing = client.get("/api/v1/recurring-sessions").json()

    assert [item["id"] for item in listing] == [own["id"]]
    assert client.get(f"/api/v1/recurring-sessions/{other['id']}").status_code == 403
    assert client.post("/api/v1/recurring-sessions", json=_payload(api_client)).status_code == 403

    api_client.current.user = api_client.people.parent
    assert client.get("/api/v1/recurring-sessions").status_code == 403


def test_patch_template_regenerates(api_client):
    client = api_client.client
    template = client.post(
        "/api/v1/recurring-sessions", json=_payload(api_client, generate_occurrences=True)
    ).json()

    response = client.patch(
        f"/api/v1/recurring-sessions/{template['id']}", json={"duration_minutes": 90}
    )

    assert response.status_code == 200
    assert response.json()["duration_minutes"] == 90
    with api_client.SessionLocal() as db:
        occurrences = db.query(models.SessionOccurrence).all()
        assert len(occurrences) == 3
        assert all(
            o.end_datetime - o.start_datetime == timedelta(minutes=90) for o in occurrences
        )


def test_roster_management(api_client):
    client = api_client.client

    created = client.post(
        "/api/v1/users",
        json={
            "email": "New.Tutor@Example.com",
            "password": "secret123",
            "first_name": "Nia",
            "role": "tutor",
        },
    )
    assert created.status_code == 201
    assert created.json()["email"] == "new.tutor@example.com"
    duplicate = client.post(
        "/api/v1/users",
        json={"email": "new.tutor@example.com", "password": "secret123", "role": "tutor"},
    )
    assert duplicate.status_code == 409
    tutors = client.get("/api/v1/users", params={"role": "tutor"}).json()
    assert len(tutors) == 3

    student = client.post(
        "/api/v1/students",
        json={"name": "Ava", "parent_user_id": api_client.people.parent.id},
    ).json()
    group = client.post(
        "/api/v1/groups",
        json={
            "name": "A-level Biology",
            "tutor_id": api_client.people.tutor.id,
            "student_ids": [student["id"]],
        },
    )
    assert group.status_code == 201
    assert group.json()["member_ids"] == [student["id"]]

    updated = client.post(
        f"/api/v1/groups/{group.json()['id']}/members",
        json={"student_ids": [student["id"], api_client.people.student.id]},
    )
    assert sorted(updated.json()["member_ids"]) == sorted(
        [student["id"], api_client.people.student.id]
    )
    missing = client.post(
        f"/api/v1/groups/{group.json()['id']}/members", json={"student_ids": [999]}
    )
    assert missing.status_code == 404


def test_manual_occurrence_and_flag_flow(api_client):
    client = api_client.client
    start = (utc_now() + timedelta(days=3)).replace(microsecond=0)
    created = client.post(
        "/api/v1/session-occurrences",
        json={
            "tutor_id": api_client.people.tutor.id,
            "student_id": api_client.people.student.id,
            "start_datetime": start.isoformat(),
            "end_datetime": (start + timedelta(hours=1)).isoformat(),
        },
    )
    assert created.status_code == 201
    occurrence_id = created.json()["id"]
    assert created.json()["source"] == "manual"

    api_client.current.user = api_client.people.other_parent
    assert client.get(f"/api/v1/session-occurrences/{occurrence_id}").status_code == 403
    assert client.post(
        f"/api/v1/parent/session-occurrences/{occurrence_id}/flag", json={"comment": "?"}
    ).status_code == 403

    api_client.current.user = api_client.people.parent
    flagged = client.post(
        f"/api/v1/parent/session-occurrences/{occurrence_id}/flag",
        json={"comment": "Wrong subject"},
    )
    assert flagged.status_code == 200
    assert flagged.json()["parent_flagged"] is True

    api_client.current.user = api_client.people.admin
    assert [item["id"] for item in client.get("/api/v1/flagged-sessions").json()] == [
        occurrence_id
    ]
    ack = client.post(f"/api/v1/flagged-sessions/{occurrence_id}/acknowledge")
    assert ack.status_code == 200
    assert ack.json()["parent_flagged"] is False
    assert client.post(f"/api/v1/flagged-sessions/{occurrence_id}/acknowledge").status_code == 400

    api_client.current.user = api_client.people.tutor
    patched = client.patch(
        f"/api/v1/session-occurrences/{occurrence_id}", json={"status": "completed"}
    )
    assert patched.status_code == 200
    assert patched.json()["status"] == "completed"
    api_client.current.user = api_client.people.other_tutor
    assert client.patch(
        f"/api/v1/session-occurrences/{occurrence_id}", json={"notes": "x"}
    ).status_code == 403


@pytest.mark.parametrize(
    "field", ["start_time", "day_of_week", "start_date", "duration_minutes", "is_active"]
)
def test_patch_rejects_null_for_required_field(api_client, field):
    client = api_client.client
    template = client.post(
        "/api/v1/recurring-sessions", json=_payload(api_client, generate_occurrences=True)
    ).json()

    response = client.patch(f"/api/v1/recurring-sessions/{template['id']}", json={field: None})

    assert response.status_code == 400
    assert response.json()["detail"] == f"{field} cannot be null"
    current = client.get(f"/api/v1/recurring-sessions/{template['id']}").json()
    assert current[field] == template[field]
    with api_client.SessionLocal() as db:
        assert db.query(models.SessionOccurrence).count() == 3


def test_patch_allows_clearing_optional_fields(api_client):
    client = api_client.client
    template = client.post("/api/v1/recurring-sessions", json=_payload(api_client)).json()

    response = client.patch(
        f"/api/v1/recurring-sessions/{template['id']}", json={"end_date": None, "subject": None}
    )

    assert response.status_code == 200
    assert response.json()["end_date"] is None
    assert response.json()["subject"] is None
