from typing import Optional

from fastapi import HTTPException, status


class ServiceError(HTTPException):
    """Base for classified errors raised from service code.

    Subclasses pin the status code so callers only supply the message; the
    server renders every subclass as ``{"success": false, "error", "code"}``.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "unexpected"

    def __init__(self, detail: str, headers: Optional[dict] = None):
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation"


class AuthenticationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: ValidationError.code,
    status.HTTP_401_UNAUTHORIZED: AuthenticationError.code,
    status.HTTP_403_FORBIDDEN: AuthorizationError.code,
    status.HTTP_404_NOT_FOUND: NotFoundError.code,
    status.HTTP_409_CONFLICT: ConflictError.code,
}


def error_code_for_status(status_code: int) -> str:
    return ERROR_CODES.get(status_code, ServiceError.code)
