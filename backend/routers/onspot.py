from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models import Admin
from onspot_service import build_user_view, create_manual_user, update_user_profile
from pass_service import complete_gate_verification, list_verification_sessions, verify_pending_pass
from schemas import (
    CollegeResponse,
    GateVerificationRequest,
    GateVerificationResponse,
    ManualUserCreate,
    ManualUserResponse,
    OnspotUserResponse,
    OnspotUserUpdate,
    OnspotUserUpdateResponse,
    OnspotViewer,
    PassResponse,
    UserResponse,
    VerificationSessionResponse,
    VerifyPendingRequest,
    VerifyPendingResponse,
)
from security import require_operation

router = APIRouter()


def _college_choice(payload) -> dict:
    return {
        "college_id": payload.college_id,
        "new_college": payload.new_college.model_dump() if payload.new_college else None,
    }


@router.post("/onspot/manual-user", response_model=ManualUserResponse)
def post_manual_user(
    payload: ManualUserCreate,
    admin: Admin = Depends(require_operation("onspot.register")),
    db: Session = Depends(get_db),
):
    result = create_manual_user(
        db,
        admin=admin,
        name=payload.name,
        email=payload.email,
        phone_no=payload.phone_no,
        year=payload.year,
        department=payload.department,
        pass_type=payload.pass_type,
        payment_source=payload.payment_source,
        **_college_choice(payload),
    )
    return ManualUserResponse(
        user_id=result["user"].id,
        pass_=PassResponse.model_validate(result["pass"]),
        warnings=result["warnings"],
    )


@router.get("/onspot/user/{user_id}", response_model=OnspotUserResponse)
def get_onspot_user(
    user_id: int,
    admin: Admin = Depends(require_operation("onspot.user")),
    db: Session = Depends(get_db),
):
    view = build_user_view(db, user_id)
    college = view["college_resolved"]
    return OnspotUserResponse(
        user=UserResponse.model_validate(view["user"]),
        college_resolved=CollegeResponse.model_validate(college) if college else None,
        passes=[PassResponse.model_validate(p) for p in view["passes"]],
        flags=view["flags"],
        viewer=OnspotViewer(admin_email=admin.email, admin_role=admin.role),
    )


@router.patch("/onspot/user/{user_id}", response_model=OnspotUserUpdateResponse)
def patch_onspot_user(
    user_id: int,
    payload: OnspotUserUpdate,
    admin: Admin = Depends(require_operation("onspot.user")),
    db: Session = Depends(get_db),
):
    user = update_user_profile(
        db,
        admin=admin,
        user_id=user_id,
        name=payload.name,
        email=payload.email,
        phone_no=payload.phone_no,
        year=payload.year,
        department=payload.department,
        **_college_choice(payload),
    )
    return OnspotUserUpdateResponse(user=UserResponse.model_validate(user))


@router.post("/onspot/pass/{pass_id}/verify-payment", response_model=VerifyPendingResponse)
def post_verify_payment(
    pass_id: int,
    payload: Optional[VerifyPendingRequest] = Body(None),
    admin: Admin = Depends(require_operation("passes.verify_pending")),
    db: Session = Depends(get_db),
):
    payload = payload or VerifyPendingRequest()
    pass_ = verify_pending_pass(
        db,
        admin=admin,
        pass_id=pass_id,
        payment_id_type=payload.payment_id_type.value if payload.payment_id_type else None,
        edited_transaction_id=payload.edited_transaction_id,
    )
    return VerifyPendingResponse(
        pass_id=pass_.id,
        status=pass_.status,
        payment_id_type=pass_.payment_id_type,
        transaction_number=pass_.transaction_number,
    )


@router.post("/onspot/pass/{pass_id}/complete-verification", response_model=GateVerificationResponse)
def post_complete_verification(
    pass_id: int,
    payload: GateVerificationRequest,
    admin: Admin = Depends(require_operation("passes.gate_complete")),
    db: Session = Depends(get_db),
):
    result = complete_gate_verification(
        db,
        admin=admin,
        pass_id=pass_id,
        physical_signature_collected=payload.physical_signature_collected,
        details_corrected_on_paper=payload.details_corrected_on_paper,
        panel_id=payload.panel_id,
    )
    return GateVerificationResponse(
        gate_status=result["gate_status"],
        has_verified_pass=result["has_verified_pass"],
        session_id=result["session_id"],
        warnings=result["warnings"],
    )


@router.get("/onspot/verification-sessions", response_model=List[VerificationSessionResponse])
def get_verification_sessions(
    user_id: Optional[int] = None,
    limit: int = Query(200, ge=1, le=1000),
    admin: Admin = Depends(require_operation("onspot.sessions")),
    db: Session = Depends(get_db),
):
    return list_verification_sessions(db, user_id=user_id, limit=limit)
