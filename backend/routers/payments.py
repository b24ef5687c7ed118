from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models import Admin
from pass_service import list_payments, review_pass, transaction_exists
from schemas import (
    ActionResponse,
    PassStatusEnum,
    PaymentIdTypeEnum,
    PaymentReviewRequest,
    PaymentsListResponse,
    TransactionCheckRequest,
    TransactionCheckResponse,
)
from security import require_operation

router = APIRouter()


@router.get("/payments", response_model=PaymentsListResponse)
def get_payments(
    status: Optional[PassStatusEnum] = None,
    pass_type: Optional[int] = Query(None, ge=1, le=4),
    payment_id_type: Optional[PaymentIdTypeEnum] = None,
    duplicates: Optional[bool] = None,
    search: Optional[str] = None,
    admin: Admin = Depends(require_operation("payments.list")),
    db: Session = Depends(get_db),
):
    return list_payments(
        db,
        status_filter=status.value if status else None,
        pass_type=pass_type,
        payment_id_type=payment_id_type.value if payment_id_type else None,
        duplicates=duplicates,
        search=search,
    )


@router.patch("/payments", response_model=ActionResponse)
def patch_payment(
    payload: PaymentReviewRequest,
    admin: Admin = Depends(require_operation("payments.review")),
    db: Session = Depends(get_db),
):
    result = review_pass(
        db,
        admin=admin,
        user_id=payload.user_id,
        pass_id=payload.pass_id,
        action=payload.action,
        rejection_reason=payload.rejection_reason,
        payment_id_type=payload.payment_id_type.value if payload.payment_id_type else None,
        edited_transaction_id=payload.edited_transaction_id,
    )
    return ActionResponse(message=result["message"], warnings=result["warnings"])


@router.post("/payments/check-transaction", response_model=TransactionCheckResponse)
def check_transaction(payload: TransactionCheckRequest, db: Session = Depends(get_db)):
    return TransactionCheckResponse(exists=transaction_exists(db, payload.transaction_id))
