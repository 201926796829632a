from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    EMAIL_UNVERIFIED = "EMAIL_UNVERIFIED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    NETWORK = "NETWORK"
    SERVER = "SERVER"
    UNKNOWN = "UNKNOWN"


_STATUS_KINDS = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.SESSION_EXPIRED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    422: ErrorKind.VALIDATION,
}

# Status codes sent back to the operator UI for each kind.
_KIND_STATUS = {
    ErrorKind.EMAIL_UNVERIFIED: 403,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.SESSION_EXPIRED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NETWORK: 502,
    ErrorKind.SERVER: 502,
    ErrorKind.UNKNOWN: 502,
}


def kind_for_status(status_code: int) -> ErrorKind:
    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.UNKNOWN


def parse_kind(raw: Any) -> Optional[ErrorKind]:
    if not isinstance(raw, str):
        return None
    try:
        return ErrorKind(raw.strip().upper())
    except ValueError:
        return None


class BackendError(Exception):
    """A failed call to the hostel API, classified by kind."""

    def __init__(self, kind: ErrorKind, status_code: int, message: str):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.message = message

    @property
    def http_status(self) -> int:
        return _KIND_STATUS.get(self.kind, 502)

    @classmethod
    def from_response(cls, status_code: int, payload: Any, reason: str = "") -> "BackendError":
        kind = None
        message = ""
        if isinstance(payload, dict):
            kind = parse_kind(payload.get("kind")) or parse_kind(payload.get("error"))
            raw_message = payload.get("message")
            if isinstance(raw_message, list):
                message = "; ".join(str(item) for item in raw_message)
            elif raw_message:
                message = str(raw_message)
        if kind is None:
            kind = kind_for_status(status_code)
        if not message:
            message = f"HTTP {status_code}: {reason}".rstrip(": ")
        return cls(kind, status_code, message)

    def __repr__(self) -> str:
        return f"BackendError(kind={self.kind.value}, status_code={self.status_code}, message={self.message!r})"


class PaymentValidationError(ValueError):
    """Raised before submitting a payment that fails the local checks."""

    def __init__(self, errors: dict):
        super().__init__("invalid_payment")
        self.errors = errors
