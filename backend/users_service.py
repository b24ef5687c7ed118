import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from college_service import get_college, sync_user_college
from errors import ConflictError, NotFoundError, ValidationError
from models import Pass, User, VerificationSession
from pass_service import missing_profile_fields
from utils import normalize_optional_text

logger = logging.getLogger(__name__)

SORT_ORDERS = {
    "newest": (User.created_at.desc(), User.id.desc()),
    "oldest": (User.created_at.asc(), User.id.asc()),
    "name_asc": (User.name.asc(), User.id.asc()),
    "name_desc": (User.name.desc(), User.id.desc()),
    "college_asc": (User.college.asc(), User.id.asc()),
    "college_desc": (User.college.desc(), User.id.desc()),
}
ONBOARDING_FILTERS = {"all", "complete", "incomplete"}


def normalize_email(email: Optional[str]) -> str:
    return str(email or "").strip().lower()


def ensure_email_available(db: Session, email: str, exclude_user_id: Optional[int] = None) -> None:
    query = db.query(User.id).filter(func.lower(User.email) == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ConflictError("A user with this email already exists")


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(
    db: Session,
    *,
    search: Optional[str] = None,
    sort_by: str = "newest",
    pass_type: Optional[int] = None,
    onboarding: str = "all",
    unmapped: Optional[bool] = None,
    page: int = 1,
    page_size: int = 50,
) -> Dict:
    """Page through participants, each annotated with its missing profile fields."""
    if sort_by not in SORT_ORDERS:
        raise ValidationError(f"Invalid sort. Must be one of: {', '.join(SORT_ORDERS)}")
    if onboarding not in ONBOARDING_FILTERS:
        raise ValidationError("Invalid onboarding filter")

    query = db.query(User)
    search = normalize_optional_text(search)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern), User.college.ilike(pattern)))
    if onboarding == "complete":
        query = query.filter(User.onboarding_completed.is_(True))
    elif onboarding == "incomplete":
        query = query.filter(User.onboarding_completed.is_(False))
    if pass_type is not None:
        query = query.filter(User.passes.any(Pass.pass_type == pass_type))
    if unmapped is True:
        query = query.filter(User.college_id.is_(None))
    elif unmapped is False:
        query = query.filter(User.college_id.isnot(None))

    total = query.count()
    users = (
        query.order_by(*SORT_ORDERS[sort_by])
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "users": [{"user": user, "missing_fields": missing_profile_fields(user)} for user in users],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


def update_user(db: Session, *, user_id: int, changes: Dict) -> User:
    """Apply an admin edit. ``college_id`` attaches a canonical college; a bare
    ``college`` string detaches the user so it shows up for reconciliation."""
    user = get_user(db, user_id)

    values: Dict = {}
    if changes.get("email") is not None:
        values["email"] = normalize_email(changes["email"])
        ensure_email_available(db, values["email"], exclude_user_id=user.id)
    for field in ("name", "phone_no", "department"):
        if changes.get(field) is not None:
            value = normalize_optional_text(changes[field])
            if not value:
                raise ValidationError(f"{field} cannot be blank")
            values[field] = value
    for field in ("year", "onboarding_completed", "email_verified"):
        if changes.get(field) is not None:
            values[field] = changes[field]
    college = get_college(db, changes["college_id"]) if changes.get("college_id") is not None else None

    for field, value in values.items():
        setattr(user, field, value)
    if college:
        sync_user_college(user, college)
    elif "college" in changes:
        user.college_id = None
        user.college = normalize_optional_text(changes["college"])

    db.commit()
    db.refresh(user)
    logger.info("User %s updated (%s)", user.id, ", ".join(sorted(changes)))
    return user


def _deletable(db: Session, users: Iterable[User]) -> List[User]:
    users = list(users)
    if not users:
        return users
    gated = sorted(
        user_id
        for (user_id,) in db.query(VerificationSession.user_id)
        .filter(VerificationSession.user_id.in_([user.id for user in users]))
        .distinct()
    )
    if gated:
        raise ConflictError(
            f"Users with gate verification records cannot be deleted: {', '.join(str(i) for i in gated)}"
        )
    return users


def delete_user(db: Session, user_id: int) -> None:
    user = get_user(db, user_id)
    _deletable(db, [user])
    db.delete(user)
    db.commit()
    logger.info("User %s deleted", user_id)


def delete_users(db: Session, user_ids: Optional[Iterable[int]]) -> int:
    ids = sorted({value for value in (user_ids or []) if value is not None})
    if not ids:
        raise ValidationError("No user ids provided")
    users = _deletable(db, db.query(User).filter(User.id.in_(ids)).all())
    for user in users:
        db.delete(user)
    db.commit()
    logger.info("Deleted %d of %d requested users", len(users), len(ids))
    return len(users)
