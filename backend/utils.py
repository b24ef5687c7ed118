import logging
from typing import Optional

from sqlalchemy.orm import Session

from models import Admin, AdminLog

logger = logging.getLogger(__name__)


def normalize_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def log_admin_action(db: Session, admin: Optional[Admin], action: str, method: Optional[str] = None, path: Optional[str] = None, meta: Optional[dict] = None) -> bool:
    """Append an AdminLog row. Returns False instead of raising; the action it
    describes has already been committed by the caller."""
    try:
        db.add(AdminLog(
            admin_id=admin.id if admin else None,
            admin_email=admin.email if admin else "",
            admin_name=admin.name if admin else "",
            action=action,
            method=method,
            path=path,
            meta=meta
        ))
        db.commit()
        return True
    except Exception as exc:
        db.rollback()
        logger.warning("Could not record admin action %r: %s", action, exc)
        return False
