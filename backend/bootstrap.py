from __future__ import annotations

import logging
import os
from typing import Optional

from sqlalchemy.orm import Session

from auth import get_password_hash
from database import Base, engine, get_db
from models import Admin, AdminRole

logger = logging.getLogger(__name__)

DEFAULT_SUPERADMIN_EMAIL = os.environ.get("DEFAULT_SUPERADMIN_EMAIL", "superadmin@techutsav.in")
DEFAULT_SUPERADMIN_NAME = "Super Admin"


def ensure_tables() -> None:
    Base.metadata.create_all(bind=engine)


def ensure_default_superadmin(db: Session, password: Optional[str] = None) -> Optional[Admin]:
    """Create the root super admin when no super admin exists yet.

    Needs DEFAULT_SUPERADMIN_PASSWORD (or an explicit password); without one
    nothing is created.
    """
    existing = db.query(Admin).filter(Admin.role == AdminRole.SUPER_ADMIN.value).first()
    if existing:
        return existing

    password = password or os.environ.get("DEFAULT_SUPERADMIN_PASSWORD")
    if not password:
        logger.warning("No super admin exists and DEFAULT_SUPERADMIN_PASSWORD is not set; skipping")
        return None

    admin = Admin(
        email=DEFAULT_SUPERADMIN_EMAIL.lower(),
        name=DEFAULT_SUPERADMIN_NAME,
        hashed_password=get_password_hash(password),
        role=AdminRole.SUPER_ADMIN.value,
        is_active=True,
        created_by="bootstrap",
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Default super admin created: %s", admin.email)
    return admin


def run_bootstrap(password: Optional[str] = None) -> None:
    ensure_tables()
    db = next(get_db())
    try:
        ensure_default_superadmin(db, password=password)
    finally:
        db.close()
