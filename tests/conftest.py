import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-techutsav-admin-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite://")
for _key in list(os.environ):
    if _key.startswith("EMAIL_PRIMARY_") or _key.startswith("EMAIL_SECONDARY_"):
        del os.environ[_key]

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import create_access_token, get_password_hash
from database import Base, get_db
from models import Admin, AdminRole, Pass, User


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_admin(db):
    def _make(role=AdminRole.SUPER_ADMIN.value, email=None, name="Desk Admin", password="password123", is_active=True):
        admin = Admin(
            email=email or f"{role}@techutsav.in",
            name=name,
            hashed_password=get_password_hash(password),
            role=role,
            is_active=is_active,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    return _make


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(passes=(), **fields):
        counter["n"] += 1
        defaults = {
            "email": f"student{counter['n']}@example.com",
            "name": f"Student {counter['n']}",
            "phone_no": "9876543210",
            "year": 2,
            "department": "CSE",
            "onboarding_completed": True,
        }
        defaults.update(fields)
        user = User(**defaults)
        for position, pass_fields in enumerate(passes):
            pass_defaults = {"pass_type": 1, "position": position}
            pass_defaults.update(pass_fields)
            user.passes.append(Pass(**pass_defaults))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def sent_emails(monkeypatch):
    import email_workflows

    sent = []

    def _record(to_email, subject, html, text):
        sent.append({"to": to_email, "subject": subject, "html": html, "text": text})

    monkeypatch.setattr(email_workflows, "send_email", _record)
    return sent


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from server import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(admin):
    token = create_access_token({"sub": admin.email, "role": admin.role})
    return {"Authorization": f"Bearer {token}"}
