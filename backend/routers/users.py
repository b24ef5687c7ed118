from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models import Admin
from pass_service import missing_profile_fields
from schemas import (
    OnboardingFilterEnum,
    PassResponse,
    UserAdminUpdate,
    UserBulkDeleteRequest,
    UserDeleteResponse,
    UserDetailResponse,
    UserListItem,
    UserListResponse,
    UserResponse,
    UserSortEnum,
)
from security import require_operation
from users_service import delete_user, delete_users, get_user, list_users, update_user
from utils import log_admin_action

router = APIRouter()


def _detail(user) -> UserDetailResponse:
    return UserDetailResponse(
        user=UserResponse.model_validate(user),
        passes=[PassResponse.model_validate(p) for p in user.passes],
        missing_fields=missing_profile_fields(user),
    )


@router.get("/users", response_model=UserListResponse)
def get_users(
    search: Optional[str] = None,
    sort_by: UserSortEnum = UserSortEnum.NEWEST,
    pass_type: Optional[int] = Query(None, ge=1, le=4),
    onboarding: OnboardingFilterEnum = OnboardingFilterEnum.ALL,
    unmapped: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    admin: Admin = Depends(require_operation("users.list")),
    db: Session = Depends(get_db),
):
    result = list_users(
        db,
        search=search,
        sort_by=sort_by.value,
        pass_type=pass_type,
        onboarding=onboarding.value,
        unmapped=unmapped,
        page=page,
        page_size=page_size,
    )
    items = [
        UserListItem.model_validate(row["user"]).model_copy(update={"missing_fields": row["missing_fields"]})
        for row in result["users"]
    ]
    return UserListResponse(users=items, total=result["total"], page=result["page"], page_size=result["page_size"])


@router.get("/users/{user_id}", response_model=UserDetailResponse)
def get_user_detail(
    user_id: int,
    admin: Admin = Depends(require_operation("users.list")),
    db: Session = Depends(get_db),
):
    return _detail(get_user(db, user_id))


@router.patch("/users/{user_id}", response_model=UserDetailResponse)
def patch_user(
    user_id: int,
    payload: UserAdminUpdate,
    request: Request,
    admin: Admin = Depends(require_operation("users.manage")),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    user = update_user(db, user_id=user_id, changes=changes)
    log_admin_action(db, admin, "Update user", method="PATCH", path=str(request.url.path), meta={"user_id": user_id, "fields": sorted(changes)})
    return _detail(user)


@router.delete("/users/{user_id}", response_model=UserDeleteResponse)
def remove_user(
    user_id: int,
    request: Request,
    admin: Admin = Depends(require_operation("users.manage")),
    db: Session = Depends(get_db),
):
    delete_user(db, user_id)
    log_admin_action(db, admin, "Delete user", method="DELETE", path=str(request.url.path), meta={"user_id": user_id})
    return UserDeleteResponse(deleted=1)


@router.delete("/users", response_model=UserDeleteResponse)
def remove_users(
    payload: UserBulkDeleteRequest,
    request: Request,
    admin: Admin = Depends(require_operation("users.manage")),
    db: Session = Depends(get_db),
):
    deleted = delete_users(db, payload.ids)
    log_admin_action(db, admin, "Delete users", method="DELETE", path=str(request.url.path), meta={"user_ids": payload.ids, "deleted": deleted})
    return UserDeleteResponse(deleted=deleted)
