from auth import verify_password
from bootstrap import DEFAULT_SUPERADMIN_EMAIL, ensure_default_superadmin
from models import Admin, AdminRole


def test_default_superadmin_needs_a_password(db, monkeypatch):
    monkeypatch.delenv("DEFAULT_SUPERADMIN_PASSWORD", raising=False)
    assert ensure_default_superadmin(db) is None
    assert db.query(Admin).count() == 0


def test_default_superadmin_is_created_once(db):
    admin = ensure_default_superadmin(db, password="bootstrap-pass-123")

    assert admin.email == DEFAULT_SUPERADMIN_EMAIL.lower()
    assert admin.role == AdminRole.SUPER_ADMIN.value
    assert verify_password("bootstrap-pass-123", admin.hashed_password)

    assert ensure_default_superadmin(db, password="other-pass-456").id == admin.id
    assert db.query(Admin).count() == 1


def test_existing_superadmin_is_kept(db, make_admin):
    root = make_admin()
    assert ensure_default_superadmin(db, password="bootstrap-pass-123").id == root.id
