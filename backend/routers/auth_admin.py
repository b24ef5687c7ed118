from typing import List

from fastapi import APIRouter, Depends, Request, Query
from sqlalchemy.orm import Session

from auth import admin_from_token, get_current_admin, get_password_hash, issue_tokens, verify_password
from database import get_db
from errors import AuthenticationError, ConflictError
from models import Admin, AdminLog
from schemas import (
    AdminCreate,
    AdminLogin,
    AdminLogResponse,
    AdminResponse,
    RefreshTokenRequest,
    TokenResponse,
)
from security import require_operation, require_superadmin
from time_utils import now_tz
from utils import log_admin_action

router = APIRouter()


@router.post("/auth/login", response_model=TokenResponse)
def admin_login(login_data: AdminLogin, db: Session = Depends(get_db)):
    admin = db.query(Admin).filter(Admin.email == login_data.email.lower()).first()
    if not admin or not admin.is_active or not verify_password(login_data.password, admin.hashed_password):
        raise AuthenticationError("Invalid credentials")

    admin.last_login = now_tz()
    db.commit()
    db.refresh(admin)
    return TokenResponse(**issue_tokens(admin), admin=AdminResponse.model_validate(admin))


@router.post("/auth/refresh", response_model=TokenResponse)
def admin_refresh(request: RefreshTokenRequest, db: Session = Depends(get_db)):
    admin = admin_from_token(db, request.refresh_token, expected_type="refresh")
    return TokenResponse(**issue_tokens(admin), admin=AdminResponse.model_validate(admin))


@router.get("/auth/me", response_model=AdminResponse)
def get_me(admin: Admin = Depends(get_current_admin)):
    return admin


@router.get("/admins", response_model=List[AdminResponse])
def list_admins(admin: Admin = Depends(require_superadmin), db: Session = Depends(get_db)):
    return db.query(Admin).order_by(Admin.created_at.desc(), Admin.id.desc()).all()


@router.post("/admins", response_model=AdminResponse, status_code=201)
def create_admin(
    payload: AdminCreate,
    request: Request,
    admin: Admin = Depends(require_superadmin),
    db: Session = Depends(get_db),
):
    email = payload.email.lower()
    if db.query(Admin).filter(Admin.email == email).first():
        raise ConflictError("Admin with this email already exists")

    new_admin = Admin(
        email=email,
        name=payload.name.strip(),
        hashed_password=get_password_hash(payload.password),
        role=payload.role.value,
        created_by=admin.email,
        is_active=True,
    )
    db.add(new_admin)
    db.commit()
    db.refresh(new_admin)
    log_admin_action(db, admin, "Create admin", method="POST", path=str(request.url.path), meta={"email": email, "role": new_admin.role})
    return new_admin


@router.get("/admin-logs", response_model=List[AdminLogResponse])
def get_admin_logs(
    limit: int = Query(100, ge=1, le=500),
    admin: Admin = Depends(require_operation("admin_logs.view")),
    db: Session = Depends(get_db),
):
    return db.query(AdminLog).order_by(AdminLog.created_at.desc(), AdminLog.id.desc()).limit(limit).all()
