from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tutordesk.api import deps
from tutordesk.api.routes import (
    audit_logs,
    change_requests,
    notifications,
    occurrences,
    recurring_sessions,
    students,
    users,
)
from tutordesk.core.timeutils import local_date
from tutordesk.db import models
from tutordesk.db.session import Base, get_db


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_occurrence(db, *, tutor, student=None, group=None, starts_at=None, **extra):
    starts_at = starts_at or datetime.now(timezone.utc) + timedelta(days=3)
    occurrence = models.SessionOccurrence(
        tutor_id=tutor.id,
        student_id=student.id if student else None,
        group_id=group.id if group else None,
        occurrence_date=local_date(starts_at),
        start_datetime=starts_at,
        end_datetime=starts_at + timedelta(hours=1),
        status=extra.pop("status", models.OccurrenceStatus.scheduled),
        source=extra.pop("source", models.OccurrenceSource.manual),
        **extra,
    )
    db.add(occurrence)
    db.commit()
    db.refresh(occurrence)
    return occurrence


def seed_people(db):
    admin = models.User(email="admin@example.com", password_hash="x", role=models.UserRole.admin)
    tutor = models.User(
        email="tutor@example.com",
        password_hash="x",
        first_name="Tara",
        last_name="Lee",
        role=models.UserRole.tutor,
    )
    other_tutor = models.User(
        email="tutor2@example.com", password_hash="x", role=models.UserRole.tutor
    )
    parent = models.User(email="parent@example.com", password_hash="x", role=models.UserRole.parent)
    other_parent = models.User(
        email="parent2@example.com", password_hash="x", role=models.UserRole.parent
    )
    db.add_all([admin, tutor, other_tutor, parent, other_parent])
    db.commit()
    student = models.Student(name="Sam", parent_user_id=parent.id, tutor_id=tutor.id)
    other_student = models.Student(name="Olly", parent_user_id=other_parent.id)
    db.add_all([student, other_student])
    db.commit()
    return SimpleNamespace(
        admin=admin,
        tutor=tutor,
        other_tutor=other_tutor,
        parent=parent,
        other_parent=other_parent,
        student=student,
        other_student=other_student,
    )


@pytest.fixture()
def people(db_session):
    return seed_people(db_session)


@pytest.fixture()
def api_client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    with TestingSessionLocal() as db:
        seeded = seed_people(db)

    current = SimpleNamespace(user=seeded.admin)

    def override_get_current_user():
        return current.user

    test_app = FastAPI()
    for module in (
        users,
        students,
        recurring_sessions,
        occurrences,
        change_requests,
        notifications,
        audit_logs,
    ):
        test_app.include_router(module.router, prefix="/api/v1")

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[deps.get_current_user] = override_get_current_user

    with TestClient(test_app) as client:
        yield SimpleNamespace(
            client=client,
            SessionLocal=TestingSessionLocal,
            people=seeded,
            current=current,
        )

    test_app.dependency_overrides.clear()
