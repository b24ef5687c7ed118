from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from college_service import create_college, list_colleges, list_merge_logs, list_unmapped_groups, merge_colleges
from database import get_db
from models import Admin
from schemas import (
    CollegeCreate,
    CollegeCreateResponse,
    CollegeListResponse,
    CollegeMergeLogResponse,
    CollegeMergeRequest,
    CollegeMergeResponse,
    CollegeResponse,
    UnmappedCollegesResponse,
)
from security import require_operation
from utils import log_admin_action

router = APIRouter()


@router.get("/colleges", response_model=CollegeListResponse)
def get_colleges(admin: Admin = Depends(require_operation("colleges.list")), db: Session = Depends(get_db)):
    return CollegeListResponse(colleges=[CollegeResponse.model_validate(c) for c in list_colleges(db)])


@router.post("/colleges", response_model=CollegeCreateResponse, status_code=201)
def post_college(
    payload: CollegeCreate,
    request: Request,
    admin: Admin = Depends(require_operation("colleges.create")),
    db: Session = Depends(get_db),
):
    college = create_college(
        db,
        name=payload.name,
        city=payload.city,
        state=payload.state,
        added_by=admin.email,
        approved=False,
    )
    log_admin_action(db, admin, "Create college", method="POST", path=str(request.url.path), meta={"college_id": college.id, "name": college.name})
    return CollegeCreateResponse(college=CollegeResponse.model_validate(college))


@router.patch("/colleges", response_model=CollegeMergeResponse)
def patch_colleges(
    payload: CollegeMergeRequest,
    request: Request,
    admin: Admin = Depends(require_operation("colleges.merge")),
    db: Session = Depends(get_db),
):
    result = merge_colleges(
        db,
        college_id=payload.college_id,
        normalized_keys=payload.normalized_keys,
        user_ids=payload.user_ids,
        performed_by=admin,
    )
    college = result["college"]
    log_admin_action(
        db, admin, "Merge colleges", method="PATCH", path=str(request.url.path),
        meta={"college_id": college.id, "modified_count": result["modified_count"], "normalized_keys": result["normalized_keys"], "user_ids": result["user_ids"]},
    )
    return CollegeMergeResponse(
        message=f"Updated {result['modified_count']} users",
        college_id=college.id,
        college_name=college.name,
        modified_count=result["modified_count"],
        normalized_keys=result["normalized_keys"],
        user_ids=result["user_ids"],
        warnings=result["warnings"],
    )


@router.get("/colleges/unmapped", response_model=UnmappedCollegesResponse)
def get_unmapped_colleges(admin: Admin = Depends(require_operation("colleges.unmapped")), db: Session = Depends(get_db)):
    return UnmappedCollegesResponse(colleges=list_unmapped_groups(db))


@router.get("/colleges/merge-logs", response_model=List[CollegeMergeLogResponse])
def get_merge_logs(
    limit: int = Query(100, ge=1, le=500),
    admin: Admin = Depends(require_operation("colleges.merge_logs")),
    db: Session = Depends(get_db),
):
    return list_merge_logs(db, limit=limit)
