"""Error taxonomy shared by the gate, the handlers and the HTTP layer.

Handlers raise ``BoardError`` subclasses; gate stages return ``Rejection``
values. Both end up as the same JSON envelope with the status code fixed by
their ``ErrorKind``.
"""

import enum
from dataclasses import dataclass

from fastapi.responses import JSONResponse


class ErrorKind(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    IDENTITY_SYNC_FAILED = "identity_sync_failed"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    CONSTRAINT_VIOLATION = "constraint_violation"
    INTERNAL = "internal"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    # Fail closed: access cannot be confirmed without a stored identity
    ErrorKind.IDENTITY_SYNC_FAILED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONSTRAINT_VIOLATION: 400,
    ErrorKind.INTERNAL: 500,
}


def error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@dataclass(frozen=True)
class Rejection:
    """Terminal outcome of a gate stage; nothing after it runs."""

    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_response(self) -> JSONResponse:
        return error_response(self.status_code, self.message)


class BoardError(Exception):
    """Base class for errors a handler reports to the caller."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def rejection(self) -> Rejection:
        return Rejection(self.kind, self.message)


class Unauthenticated(BoardError):
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Authentication required"


class IdentitySyncFailed(BoardError):
    kind = ErrorKind.IDENTITY_SYNC_FAILED
    default_message = "User authentication failed"


class NotFound(BoardError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class Forbidden(BoardError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Insufficient permissions"


class ValidationFailed(BoardError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid request"


class ConstraintViolation(BoardError):
    """A unique constraint rejected the write (duplicate slug, email, ...)."""

    kind = ErrorKind.CONSTRAINT_VIOLATION
    default_message = "Already exists"
