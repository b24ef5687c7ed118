import logging
import secrets
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from auth import get_password_hash
from college_service import resolve_or_create_college, sync_user_college
from email_workflows import notify_safely, send_onspot_pass_email
from models import (
    Admin,
    College,
    GateStatus,
    Pass,
    PassStatus,
    PaymentIdType,
    User,
    VerificationSource,
)
from pass_service import is_profile_complete, missing_profile_fields
from time_utils import epoch_millis, now_tz
from users_service import ensure_email_available, get_user, normalize_email

logger = logging.getLogger(__name__)

ONSPOT_SCREENSHOT_PLACEHOLDER = "onspot-no-screenshot"


def generate_onspot_transaction_number() -> str:
    return f"ONSPOT-{epoch_millis()}-{secrets.randbelow(10000):04d}"


def create_manual_user(
    db: Session,
    *,
    admin: Admin,
    name: str,
    email: str,
    phone_no: str,
    year: int,
    department: str,
    pass_type: int,
    payment_source: str,
    college_id: Optional[int] = None,
    new_college: Optional[dict] = None,
) -> Dict:
    """Register a walk-in participant with one pass that is already paid for.

    The pass still has to go through gate verification; only the payment
    review step is skipped.
    """
    normalized_email = normalize_email(email)
    ensure_email_available(db, normalized_email)

    college = resolve_or_create_college(
        db,
        college_id=college_id,
        new_college=new_college,
        added_by=admin.email,
    )

    now = now_tz()
    user = User(
        name=name.strip(),
        email=normalized_email,
        hashed_password=get_password_hash(secrets.token_hex(16)),
        phone_no=phone_no.strip(),
        year=year,
        department=department.strip(),
        onboarding_completed=True,
        has_verified_pass=False,
    )
    if college:
        sync_user_college(user, college)

    pass_ = Pass(
        position=0,
        pass_type=pass_type,
        payment_id_type=PaymentIdType.ONSPOT.value,
        transaction_number=generate_onspot_transaction_number(),
        transaction_screenshot=ONSPOT_SCREENSHOT_PLACEHOLDER,
        status=PassStatus.VERIFIED.value,
        gate_status=GateStatus.NOT_CHECKED.value,
        payment_source=payment_source,
        verification_source=VerificationSource.ONSPOT.value,
        onspot_created=True,
        submitted_date=now,
        verified_date=now,
        verified_by=admin.name or "Admin",
        verified_by_email=admin.email or "",
    )
    user.passes.append(pass_)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("On-spot user %s registered by %s with pass type %s", user.id, admin.email, pass_type)

    warnings: List[str] = []
    warning = notify_safely("on-spot pass", send_onspot_pass_email, user.email, user.name, pass_type, user.id)
    if warning:
        warnings.append(warning)

    return {"user": user, "pass": pass_, "warnings": warnings}


def build_user_view(db: Session, user_id: int) -> Dict:
    user = get_user(db, user_id)
    college = None
    if user.college_id:
        college = db.query(College).filter(College.id == user.college_id).first()

    passes = list(user.passes)
    return {
        "user": user,
        "college_resolved": college,
        "passes": passes,
        "flags": {
            "profile_complete": is_profile_complete(user),
            "missing_fields": missing_profile_fields(user),
            "has_any_pass": bool(passes),
            "has_eligible_pass": any(
                p.status in (PassStatus.PENDING.value, PassStatus.VERIFIED.value) for p in passes
            ),
            "has_gate_allowance": any(p.gate_status == GateStatus.ALLOWED.value for p in passes),
            "has_verified_pass": bool(user.has_verified_pass),
        },
    }


def update_user_profile(
    db: Session,
    *,
    admin: Admin,
    user_id: int,
    name: str,
    email: str,
    phone_no: str,
    year: int,
    department: str,
    college_id: Optional[int] = None,
    new_college: Optional[dict] = None,
) -> User:
    user = get_user(db, user_id)
    normalized_email = normalize_email(email)
    ensure_email_available(db, normalized_email, exclude_user_id=user.id)

    college = resolve_or_create_college(
        db,
        college_id=college_id,
        new_college=new_college,
        added_by=admin.email,
    )

    user.name = name.strip()
    user.email = normalized_email
    user.phone_no = phone_no.strip()
    user.year = year
    user.department = department.strip()
    if college:
        sync_user_college(user, college)
    user.onboarding_completed = True
    db.commit()
    db.refresh(user)
    logger.info("Profile of user %s updated at desk by %s", user.id, admin.email)
    return user
