import logging
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from email_workflows import notify_safely, send_payment_rejected_email, send_payment_verified_email
from errors import ConflictError, NotFoundError, ValidationError
from models import (
    Admin,
    College,
    GateStatus,
    Pass,
    PassStatus,
    PaymentIdType,
    User,
    VerificationSession,
    VerificationSource,
)
from time_utils import now_tz
from utils import normalize_optional_text

logger = logging.getLogger(__name__)

NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")
PAYMENT_ID_TYPES = {item.value for item in PaymentIdType}
REVIEW_ACTIONS = {"verify", "reject"}
PROFILE_FIELDS = ("name", "email", "college", "year", "department", "phone_no")


def normalize_transaction_number(value: Optional[str]) -> str:
    return NON_ALNUM_RE.sub("", str(value or "")).lower()


def has_special_characters(value: Optional[str]) -> bool:
    return bool(NON_ALNUM_RE.search(str(value or "")))


def missing_profile_fields(user: User) -> List[str]:
    missing = [
        field
        for field in ("college", "phone_no", "year", "department")
        if not getattr(user, field)
    ]
    if not user.email_verified:
        missing.append("email_verified")
    return missing


def is_profile_complete(user: User) -> bool:
    if user.onboarding_completed:
        return True
    return all(getattr(user, field) for field in PROFILE_FIELDS)


def find_pass(db: Session, pass_id: int) -> Pass:
    pass_ = (
        db.query(Pass)
        .options(joinedload(Pass.user))
        .filter(Pass.id == pass_id)
        .first()
    )
    if not pass_ or not pass_.user:
        raise NotFoundError("Pass not found")
    return pass_


def get_user_pass(db: Session, user_id: int, pass_id: int) -> Tuple[User, Pass]:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    pass_ = next((item for item in user.passes if item.id == pass_id), None)
    if not pass_:
        raise NotFoundError("Pass not found")
    return user, pass_


def _validate_payment_id_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if value not in PAYMENT_ID_TYPES:
        raise ValidationError(f"Invalid payment id type. Must be one of: {', '.join(sorted(PAYMENT_ID_TYPES))}")
    return value


def _stamp_verifier(pass_: Pass, admin: Admin) -> None:
    pass_.verified_date = now_tz()
    pass_.verified_by = admin.name or "Admin"
    pass_.verified_by_email = admin.email or ""


def duplicate_counts(transaction_numbers: Iterable[Optional[str]]) -> Counter:
    counts: Counter = Counter()
    for value in transaction_numbers:
        normalized = normalize_transaction_number(value)
        if normalized:
            counts[normalized] += 1
    return counts


def is_duplicate(transaction_number: Optional[str], counts: Counter) -> bool:
    normalized = normalize_transaction_number(transaction_number)
    return bool(normalized) and counts[normalized] > 1


def _payment_record(user: User, pass_: Pass, counts: Counter) -> Dict:
    return {
        "user_id": user.id,
        "pass_id": pass_.id,
        "user_name": user.name or "",
        "user_email": user.email,
        "college": user.college or "",
        "department": user.department or "",
        "year": user.year,
        "phone_no": user.phone_no or "",
        "pass_type": pass_.pass_type,
        "payment_id_type": pass_.payment_id_type,
        "payment_source": pass_.payment_source,
        "transaction_number": pass_.transaction_number or "",
        "screenshot_url": pass_.transaction_screenshot,
        "status": pass_.status,
        "gate_status": pass_.gate_status,
        "rejection_reason": pass_.rejection_reason or "",
        "submitted_date": pass_.submitted_date,
        "verified_date": pass_.verified_date,
        "verified_by": pass_.verified_by or "",
        "verified_by_email": pass_.verified_by_email or "",
        "is_duplicate": is_duplicate(pass_.transaction_number, counts),
        "has_special_characters": has_special_characters(pass_.transaction_number),
    }


def _matches(record: Dict, search: str) -> bool:
    needle = search.lower()
    haystack = (record["user_name"], record["user_email"], record["transaction_number"], record["college"])
    return any(needle in (value or "").lower() for value in haystack)


def list_payments(
    db: Session,
    *,
    status_filter: Optional[str] = None,
    pass_type: Optional[int] = None,
    payment_id_type: Optional[str] = None,
    duplicates: Optional[bool] = None,
    search: Optional[str] = None,
) -> Dict:
    """Flatten every pass of every user into one record, flagging duplicates.

    Duplicate counts always cover all passes, before any filter is applied.
    """
    rows = (
        db.query(Pass, User)
        .join(User, Pass.user_id == User.id)
        .order_by(User.id.asc(), Pass.position.asc(), Pass.id.asc())
        .all()
    )
    counts = duplicate_counts(pass_.transaction_number for pass_, _ in rows)
    records = [_payment_record(user, pass_, counts) for pass_, user in rows]

    summary = {
        "total": len(records),
        "pending": sum(1 for r in records if r["status"] == PassStatus.PENDING.value),
        "verified": sum(1 for r in records if r["status"] == PassStatus.VERIFIED.value),
        "rejected": sum(1 for r in records if r["status"] == PassStatus.REJECTED.value),
        "duplicates": sum(1 for r in records if r["is_duplicate"]),
    }

    if status_filter:
        records = [r for r in records if r["status"] == status_filter]
    if pass_type is not None:
        records = [r for r in records if r["pass_type"] == pass_type]
    if payment_id_type:
        records = [r for r in records if r["payment_id_type"] == payment_id_type]
    if duplicates is not None:
        records = [r for r in records if r["is_duplicate"] == duplicates]
    search = normalize_optional_text(search)
    if search:
        records = [r for r in records if _matches(r, search)]

    return {"payments": records, "summary": summary}


def transaction_exists(db: Session, transaction_id: Optional[str]) -> bool:
    # Exact match on purpose; the listing uses the normalized comparison.
    if not transaction_id or not str(transaction_id).strip():
        raise ValidationError("Missing transactionId")
    return db.query(Pass.id).filter(Pass.transaction_number == transaction_id).first() is not None


def review_pass(
    db: Session,
    *,
    admin: Admin,
    user_id: int,
    pass_id: int,
    action: str,
    rejection_reason: Optional[str] = None,
    payment_id_type: Optional[str] = None,
    edited_transaction_id: Optional[str] = None,
) -> Dict:
    """Verify or reject a submitted pass from the payments review queue."""
    if action not in REVIEW_ACTIONS:
        raise ValidationError("Invalid action")
    reason = normalize_optional_text(rejection_reason)
    if action == "reject" and not reason:
        raise ValidationError("Rejection reason is required")
    requested_type = _validate_payment_id_type(payment_id_type)
    edited_transaction_id = normalize_optional_text(edited_transaction_id)

    user, pass_ = get_user_pass(db, user_id, pass_id)

    if pass_.status == PassStatus.REJECTED.value:
        raise ConflictError("Rejected passes cannot be reviewed again")

    warnings: List[str] = []
    if action == "verify":
        effective_type = requested_type or pass_.payment_id_type
        if effective_type not in PAYMENT_ID_TYPES:
            raise ValidationError("A valid payment id type is required to verify a payment")

        correction_only = pass_.status == PassStatus.VERIFIED.value
        pass_.payment_id_type = effective_type
        if edited_transaction_id:
            pass_.transaction_number = edited_transaction_id
        if not correction_only:
            pass_.status = PassStatus.VERIFIED.value
            pass_.rejection_reason = None
            _stamp_verifier(pass_, admin)
        user.has_verified_pass = True
        db.commit()
        logger.info("Pass %s of user %s verified by %s (correction=%s)", pass_.id, user.id, admin.email, correction_only)

        if correction_only:
            message = "Payment details corrected"
        else:
            message = "Payment verified"
            warning = notify_safely(
                "payment verification", send_payment_verified_email, user.email, user.name, pass_.pass_type
            )
            if warning:
                warnings.append(warning)
    else:
        if pass_.status == PassStatus.VERIFIED.value:
            raise ConflictError("Verified passes cannot be rejected")
        pass_.status = PassStatus.REJECTED.value
        pass_.rejection_reason = reason
        _stamp_verifier(pass_, admin)
        db.commit()
        logger.info("Pass %s of user %s rejected by %s", pass_.id, user.id, admin.email)

        message = "Payment rejected"
        warning = notify_safely(
            "payment rejection", send_payment_rejected_email, user.email, user.name, pass_.pass_type, reason
        )
        if warning:
            warnings.append(warning)

    return {"user": user, "pass": pass_, "message": message, "warnings": warnings}


def verify_pending_pass(
    db: Session,
    *,
    admin: Admin,
    pass_id: int,
    payment_id_type: Optional[str] = None,
    edited_transaction_id: Optional[str] = None,
) -> Pass:
    """Quick desk flow: mark a pending pass verified without touching the gate."""
    requested_type = _validate_payment_id_type(payment_id_type)
    pass_ = find_pass(db, pass_id)
    if pass_.status != PassStatus.PENDING.value:
        raise ValidationError("Only pending payments can be verified here")

    pass_.status = PassStatus.VERIFIED.value
    pass_.payment_id_type = requested_type or pass_.payment_id_type or PaymentIdType.UPI.value
    edited = normalize_optional_text(edited_transaction_id)
    if edited:
        pass_.transaction_number = edited
    _stamp_verifier(pass_, admin)
    db.commit()
    db.refresh(pass_)
    logger.info("Pending pass %s verified at desk by %s", pass_.id, admin.email)
    return pass_


def _resolve_college_name(db: Session, user: User) -> str:
    if user.college:
        return user.college
    if user.college_id:
        college = db.query(College).filter(College.id == user.college_id).first()
        if college:
            return college.name
    return ""


def complete_gate_verification(
    db: Session,
    *,
    admin: Admin,
    pass_id: int,
    physical_signature_collected: bool,
    details_corrected_on_paper: bool,
    panel_id: Optional[str] = None,
) -> Dict:
    """Admit the holder of a verified pass at the gate, at most once."""
    pass_ = find_pass(db, pass_id)
    user = pass_.user

    if pass_.status != PassStatus.VERIFIED.value:
        raise ValidationError("Payment must be verified before completing on-spot verification")
    if not is_profile_complete(user):
        raise ValidationError("User profile is incomplete; update details before verification")
    if pass_.gate_status and pass_.gate_status != GateStatus.NOT_CHECKED.value:
        raise ConflictError("Verification already completed for this pass")

    panel_id = normalize_optional_text(panel_id)
    college_name = _resolve_college_name(db, user)
    snapshot_user = {
        "name": user.name,
        "email": user.email,
        "phone_no": user.phone_no,
        "year": user.year,
        "department": user.department,
    }

    pass_.gate_status = GateStatus.ALLOWED.value
    pass_.gate_checked_at = now_tz()
    pass_.gate_checked_by_admin_id = admin.id
    pass_.gate_checked_by_panel_id = panel_id
    pass_.verification_source = VerificationSource.ONSPOT.value
    user.has_verified_pass = True
    db.commit()
    logger.info("Gate verification completed for pass %s by %s (panel=%s)", pass_.id, admin.email, panel_id)

    warnings: List[str] = []
    session_id = None
    try:
        session = VerificationSession(
            user_id=user.id,
            pass_id=pass_.id,
            pass_type=pass_.pass_type,
            snapshot_user=snapshot_user,
            snapshot_college_name=college_name,
            admin_id=admin.id,
            admin_email=admin.email,
            panel_id=panel_id,
            physical_signature_collected=physical_signature_collected,
            details_corrected_on_paper=details_corrected_on_paper,
        )
        db.add(session)
        db.commit()
        session_id = session.id
    except Exception as exc:
        db.rollback()
        logger.exception("Could not record verification session for pass %s", pass_id)
        warnings.append(f"gate allowed, but verification session was not recorded: {exc.__class__.__name__}")

    return {
        "pass": pass_,
        "user": user,
        "gate_status": pass_.gate_status,
        "has_verified_pass": bool(user.has_verified_pass),
        "session_id": session_id,
        "warnings": warnings,
    }


def list_verification_sessions(db: Session, *, user_id: Optional[int] = None, limit: int = 200) -> List[VerificationSession]:
    query = db.query(VerificationSession)
    if user_id is not None:
        query = query.filter(VerificationSession.user_id == user_id)
    return query.order_by(VerificationSession.created_at.desc(), VerificationSession.id.desc()).limit(limit).all()
