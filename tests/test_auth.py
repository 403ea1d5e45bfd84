import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tutordesk.api.routes import auth, misc, users
from tutordesk.core import security
from tutordesk.db import models
from tutordesk.db.session import Base, get_db
from tutordesk.services.admin import ensure_admin_exists


def test_creates_default_admin(db_session):
    ensure_admin_exists(db_session, "Owner@Example.com", "strong_password")

    created = db_session.query(models.User).filter_by(email="owner@example.com").one()

    assert created.role == models.UserRole.admin
    assert created.is_active is True
    assert security.verify_password("strong_password", created.password_hash)


def test_updates_password_for_existing_admin(db_session):
    ensure_admin_exists(db_session, "owner@example.com", "old_password")

    ensure_admin_exists(db_session, "owner@example.com", "new_password")

    admins = db_session.query(models.User).filter_by(email="owner@example.com").all()
    assert len(admins) == 1
    assert security.verify_password("new_password", admins[0].password_hash)


def test_promotes_and_reactivates_existing_user(db_session):
    user = models.User(
        email="owner@example.com",
        password_hash=security.get_password_hash("pw123456"),
        role=models.UserRole.tutor,
        is_active=False,
    )
    db_session.add(user)
    db_session.commit()

    ensure_admin_exists(db_session, "owner@example.com", "pw123456")

    db_session.refresh(user)
    assert user.role == models.UserRole.admin
    assert user.is_active is True


@pytest.fixture()
def auth_client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    with TestingSessionLocal() as db:
        db.add_all(
            [
                models.User(
                    email="tutor@example.com",
                    password_hash=security.get_password_hash("tutorpass"),
                    first_name="Tara",
                    role=models.UserRole.tutor,
                ),
                models.User(
                    email="gone@example.com",
                    password_hash=security.get_password_hash("gonepass"),
                    role=models.UserRole.parent,
                    is_active=False,
                ),
            ]
        )
        db.commit()

    test_app = FastAPI()
    for module in (auth, users, misc):
        test_app.include_router(module.router, prefix="/api/v1")
    test_app.dependency_overrides[get_db] = override_get_db

    with TestClient(test_app) as client:
        yield client, TestingSessionLocal


def test_login_and_me(auth_client):
    client, SessionLocal = auth_client

    response = client.post(
        "/api/v1/auth/login", data={"username": "Tutor@example.com", "password": "tutorpass"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "tutor"
    token = body["access_token"]
    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "tutor@example.com"
    assert me.json()["name"] == "Tara"
    with SessionLocal() as db:
        assert db.query(models.User).filter_by(email="tutor@example.com").one().last_login_at


def test_tutor_token_cannot_reach_admin_routes(auth_client):
    client, _ = auth_client
    token = client.post(
        "/api/v1/auth/login", data={"username": "tutor@example.com", "password": "tutorpass"}
    ).json()["access_token"]

    response = client.get("/api/v1/users", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403


@pytest.mark.parametrize(
    "username,password",
    [("tutor@example.com", "wrong"), ("gone@example.com", "gonepass"), ("nobody@example.com", "x")],
)
def test_invalid_login(auth_client, username, password):
    client, _ = auth_client

    response = client.post("/api/v1/auth/login", data={"username": username, "password": password})

    assert response.status_code == 400


def test_invalid_and_stale_tokens(auth_client):
    client, SessionLocal = auth_client
    assert client.get("/api/v1/auth/me").status_code == 401
    assert client.get(
        "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"}
    ).status_code == 401

    with SessionLocal() as db:
        gone = db.query(models.User).filter_by(email="gone@example.com").one()
        token = security.create_access_token({"sub": str(gone.id)})
    assert client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
    ).status_code == 401

    for claims in ({"sub": "999"}, {"sub": "abc"}, {"role": "admin"}):
        token = security.create_access_token(claims)
        assert client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}
        ).status_code == 401


def test_health(auth_client):
    client, _ = auth_client

    assert client.get("/api/v1/health").json() == {"status": "ok"}
