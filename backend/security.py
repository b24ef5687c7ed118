from typing import Dict, FrozenSet

from fastapi import Depends

from auth import get_current_admin
from errors import AuthorizationError
from models import Admin, AdminRole

ALL_ROLES: FrozenSet[str] = frozenset(role.value for role in AdminRole)
SUPER_ADMIN_ONLY: FrozenSet[str] = frozenset({AdminRole.SUPER_ADMIN.value})
PAYMENT_ROLES: FrozenSet[str] = frozenset({AdminRole.SUPER_ADMIN.value, AdminRole.PAYMENTS_ADMIN.value})
VIEWER_ROLES: FrozenSet[str] = frozenset({AdminRole.SUPER_ADMIN.value, AdminRole.VIEW_ONLY.value})

# Single source of truth for which roles may run which operation.
OPERATION_POLICY: Dict[str, FrozenSet[str]] = {
    "colleges.list": ALL_ROLES,
    "colleges.create": SUPER_ADMIN_ONLY,
    "colleges.merge": SUPER_ADMIN_ONLY,
    "colleges.unmapped": SUPER_ADMIN_ONLY,
    "colleges.merge_logs": SUPER_ADMIN_ONLY,
    "payments.list": ALL_ROLES,
    "payments.review": PAYMENT_ROLES,
    "passes.verify_pending": PAYMENT_ROLES,
    "passes.gate_complete": PAYMENT_ROLES,
    "onspot.register": PAYMENT_ROLES,
    "onspot.user": PAYMENT_ROLES,
    "onspot.sessions": PAYMENT_ROLES,
    "users.list": VIEWER_ROLES,
    "users.manage": SUPER_ADMIN_ONLY,
    "admins.manage": SUPER_ADMIN_ONLY,
    "admin_logs.view": SUPER_ADMIN_ONLY,
}


def is_allowed(role: str, operation: str) -> bool:
    allowed = OPERATION_POLICY.get(operation)
    if allowed is None:
        raise KeyError(f"Unknown operation: {operation}")
    return role in allowed


def ensure_allowed(admin: Admin, operation: str) -> Admin:
    if not is_allowed(admin.role, operation):
        raise AuthorizationError("Admin role does not allow this operation")
    return admin


def require_operation(operation: str):
    if operation not in OPERATION_POLICY:
        raise KeyError(f"Unknown operation: {operation}")

    def _checker(admin: Admin = Depends(get_current_admin)) -> Admin:
        return ensure_allowed(admin, operation)

    return _checker


def require_superadmin(admin: Admin = Depends(require_operation("admins.manage"))) -> Admin:
    return admin
