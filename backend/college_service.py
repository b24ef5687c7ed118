import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from errors import NotFoundError, ValidationError
from models import Admin, College, CollegeMergeLog, User
from utils import normalize_optional_text

logger = logging.getLogger(__name__)


def normalize_college_name(value: Optional[str]) -> str:
    # Only place a college key is computed; SQL lower() is ASCII-only on some backends.
    return str(value or "").strip().lower()


def list_colleges(db: Session) -> List[College]:
    return db.query(College).order_by(College.name.asc()).all()


def get_college(db: Session, college_id: Optional[int]) -> College:
    college = db.query(College).filter(College.id == college_id).first() if college_id is not None else None
    if not college:
        raise NotFoundError("College not found")
    return college


def find_college_by_name(db: Session, name: Optional[str]) -> Optional[College]:
    normalized = normalize_college_name(name)
    if not normalized:
        return None
    for college in db.query(College).order_by(College.id.asc()).all():
        if normalize_college_name(college.name) == normalized:
            return college
    return None


def create_college(
    db: Session,
    *,
    name: Optional[str],
    city: Optional[str] = None,
    state: Optional[str] = None,
    added_by: Optional[str] = None,
    approved: bool = False,
    commit: bool = True,
) -> College:
    """Create a canonical college, refusing names that already exist once
    trimmed and lower-cased."""
    clean_name = normalize_optional_text(name)
    if not clean_name:
        raise ValidationError("College name is required")
    if find_college_by_name(db, clean_name):
        raise ValidationError("College name already exists")

    college = College(
        name=clean_name,
        city=normalize_optional_text(city) or "",
        state=normalize_optional_text(state) or "",
        added_by_user=added_by,
        approved=approved,
    )
    db.add(college)
    if commit:
        db.commit()
        db.refresh(college)
    else:
        db.flush()
    logger.info("College %r created by %s (approved=%s)", college.name, added_by, approved)
    return college


def resolve_or_create_college(
    db: Session,
    *,
    college_id: Optional[int] = None,
    new_college: Optional[dict] = None,
    added_by: Optional[str] = None,
) -> Optional[College]:
    """Resolve the college chosen in a trusted on-spot form.

    An existing ``college_id`` is authoritative; ``new_college`` is only read
    when no id is given. A new college is created approved, since an admin is
    at the desk, and a name that already exists resolves to that record.
    """
    if college_id is not None:
        return get_college(db, college_id)
    if new_college:
        existing = find_college_by_name(db, new_college.get("name"))
        if existing:
            return existing
        return create_college(
            db,
            name=new_college.get("name"),
            city=new_college.get("city"),
            state=new_college.get("state"),
            added_by=added_by,
            approved=True,
            commit=False,
        )
    return None


def sync_user_college(user: User, college: College) -> None:
    """Only writer of ``User.college`` while a canonical college is attached."""
    user.college_id = college.id
    user.college = college.name


def _unmapped_rows(db: Session) -> List[Tuple[int, str, str]]:
    """(user id, trimmed name, normalized key) for every unmapped user with a
    non-blank college, sorted by key then id."""
    rows = (
        db.query(User.id, User.college)
        .filter(User.college_id.is_(None))
        .filter(User.college.isnot(None))
        .order_by(User.id.asc())
        .all()
    )
    keyed = [
        (user_id, raw.strip(), normalize_college_name(raw))
        for user_id, raw in rows
    ]
    return sorted((row for row in keyed if row[2]), key=lambda row: (row[2], row[0]))


def list_unmapped_groups(db: Session) -> List[Dict]:
    groups: "OrderedDict[str, Dict]" = OrderedDict()
    for user_id, raw_name, key in _unmapped_rows(db):
        group = groups.setdefault(key, {"user_ids": [], "variants": {}})
        group["user_ids"].append(user_id)
        group["variants"][raw_name] = group["variants"].get(raw_name, 0) + 1

    result = []
    for key, group in groups.items():
        variants = sorted(
            ({"name": name, "count": count} for name, count in group["variants"].items()),
            key=lambda item: (-item["count"], item["name"]),
        )
        result.append({
            "normalized_key": key,
            "display_name": variants[0]["name"] if variants else key,
            "total_users": len(group["user_ids"]),
            "user_ids": group["user_ids"],
            "variants": variants,
        })
    return result


def _clean_keys(keys: Optional[Iterable[str]]) -> List[str]:
    seen = set()
    cleaned: List[str] = []
    for key in keys or []:
        normalized = normalize_college_name(key)
        if normalized and normalized not in seen:
            seen.add(normalized)
            cleaned.append(normalized)
    return cleaned


def _clean_ids(ids: Optional[Iterable[int]]) -> List[int]:
    seen = set()
    cleaned: List[int] = []
    for value in ids or []:
        if value is None or value in seen:
            continue
        seen.add(value)
        cleaned.append(value)
    return cleaned


def merge_colleges(
    db: Session,
    *,
    college_id: int,
    performed_by: Optional[Admin],
    normalized_keys: Optional[Iterable[str]] = None,
    user_ids: Optional[Iterable[int]] = None,
) -> Dict:
    """Attach every matching unmapped user to ``college_id`` in one UPDATE.

    The match predicate only sees users whose ``college_id`` is still NULL, so
    replaying the same keys modifies nothing. Overlapping merges to different
    colleges are last-write-wins.
    """
    college = get_college(db, college_id)
    keys = _clean_keys(normalized_keys)
    ids = [] if keys else _clean_ids(user_ids)
    if not keys and not ids:
        raise ValidationError("At least one normalized key or user id is required")

    values = {User.college_id: college.id, User.college: college.name}
    if keys:
        wanted = set(keys)
        matched = [user_id for user_id, _, key in _unmapped_rows(db) if key in wanted]
        # Re-check college_id so a concurrent merge of the same users wins.
        query = (
            db.query(User)
            .filter(User.id.in_(matched))
            .filter(User.college_id.is_(None))
        )
    else:
        query = db.query(User).filter(User.id.in_(ids))

    modified_count = query.update(values, synchronize_session=False)
    db.commit()
    db.expire_all()
    logger.info(
        "Merged %d users into college %s (%r) by %s",
        modified_count, college.id, college.name, performed_by.email if performed_by else None,
    )

    warnings: List[str] = []
    try:
        db.add(CollegeMergeLog(
            college_id=college.id,
            college_name=college.name,
            normalized_keys=keys or None,
            user_ids=ids or None,
            modified_count=modified_count,
            performed_by_email=performed_by.email if performed_by else None,
        ))
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Could not append college merge log for college %s", college.id)
        warnings.append(f"users updated, but merge log failed: {exc.__class__.__name__}")

    return {
        "college": college,
        "modified_count": modified_count,
        "normalized_keys": keys,
        "user_ids": ids,
        "warnings": warnings,
    }


def list_merge_logs(db: Session, limit: int = 100) -> List[CollegeMergeLog]:
    return (
        db.query(CollegeMergeLog)
        .order_by(CollegeMergeLog.performed_at.desc(), CollegeMergeLog.id.desc())
        .limit(limit)
        .all()
    )
