"""Structured error information and the processor error taxonomy.

Exceptions in this module are raised inside a component and caught at its
public boundary, where they are reflected into an ``ErrorInfo`` that callers
retrieve via ``get_error_info()``. Public operations report failure by
returning ``None``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ERR_NO_ERROR = 0
ERR_NO_CHANNEL = -1
ERR_CURL_ERROR = -2
ERR_CANT_UPDATE = -100

RETRYABLE_HTTP_STATUSES = frozenset({401, 429, 500, 503})


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    NO_CHANNEL = "NoChannel"
    TRANSPORT_ERROR = "TransportError"
    AUTH_EXPIRED = "AuthExpired"
    PROTOCOL_ERROR = "ProtocolError"
    DIFF_NOT_ALLOWED = "DiffNotAllowed"
    UNEXPECTED_STATUS = "UnexpectedStatus"


@dataclass(frozen=True)
class ErrorDetail:
    """One entry of a PayPal error response's ``details`` array."""

    issue: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ErrorDetail":
        return cls(
            issue=str(data.get("issue", "")),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True)
class ErrorInfo:
    """
    Error information recorded for the most recent call.

    Attributes:
        numeric_code: 0 on success, a negative ERR_* constant for local
            failures, otherwise the HTTP status returned by PayPal
        message: Locally generated description of the failure
        transport_error_code: Native (OS) error number of a transport failure
        http_status: HTTP status of the response, 200 when none was received
        name: PayPal error name, e.g. "UNPROCESSABLE_ENTITY"
        detail_message: PayPal error message
        details: PayPal error details, in response order
        kind: Failure category, None on success
    """

    numeric_code: int = ERR_NO_ERROR
    message: str = ""
    transport_error_code: int = 0
    http_status: int = 200
    name: str = "n/a"
    detail_message: str = "n/a"
    details: tuple[ErrorDetail, ...] = field(default_factory=tuple)
    kind: ErrorKind | None = None

    @classmethod
    def success(cls) -> "ErrorInfo":
        """The baseline every call starts from."""
        return cls()

    @classmethod
    def from_response(
        cls,
        http_status: int,
        message: str,
        body: Any,
        kind: ErrorKind,
    ) -> "ErrorInfo":
        """Build from a PayPal error body (``name``, ``message``, ``details``)."""
        body = body if isinstance(body, dict) else {}
        raw_details = body.get("details")
        details: tuple[ErrorDetail, ...] = ()
        if isinstance(raw_details, list):
            details = tuple(
                ErrorDetail.from_dict(detail) for detail in raw_details if isinstance(detail, dict)
            )
        return cls(
            numeric_code=http_status,
            message=message,
            http_status=http_status,
            name=str(body.get("name", "n/a")),
            detail_message=str(body.get("message", "n/a")),
            details=details,
            kind=kind,
        )

    @property
    def is_error(self) -> bool:
        return self.kind is not None

    @property
    def is_retryable(self) -> bool:
        """Whether a caller-side retry might succeed."""
        if self.kind == ErrorKind.TRANSPORT_ERROR:
            return True
        if self.kind in (ErrorKind.AUTH_EXPIRED, ErrorKind.PROTOCOL_ERROR):
            return self.http_status in RETRYABLE_HTTP_STATUSES
        return False

    @property
    def first_issue(self) -> str:
        """The first detail's issue code, or an empty string."""
        return self.details[0].issue if self.details else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "numeric_code": self.numeric_code,
            "message": self.message,
            "transport_error_code": self.transport_error_code,
            "http_status": self.http_status,
            "name": self.name,
            "detail_message": self.detail_message,
            "details": [
                {"issue": detail.issue, "description": detail.description}
                for detail in self.details
            ],
            "kind": self.kind.value if self.kind else None,
        }


class ProcessorError(Exception):
    """Base exception for failures talking to, or on behalf of, PayPal."""

    kind: ErrorKind

    def __init__(self, error_info: ErrorInfo):
        super().__init__(error_info.message or error_info.name)
        self.error_info = error_info


class NoChannel(ProcessorError):
    """
    Raised when the HTTP client could not be (re)initialized.

    No request is attempted while the channel is unavailable.
    """

    kind = ErrorKind.NO_CHANNEL


class TransportError(ProcessorError):
    """
    Raised on connect failures, timeouts and other network errors.

    This is a RETRYABLE error; ``error_info.transport_error_code`` carries the
    native error number when one is available.
    """

    kind = ErrorKind.TRANSPORT_ERROR


class AuthExpired(ProcessorError):
    """
    Raised when PayPal answers 401.

    The cached access token has already been invalidated; a single retry with
    a fresh token is appropriate.
    """

    kind = ErrorKind.AUTH_EXPIRED


class ProtocolError(ProcessorError):
    """Raised for a 4xx/5xx response carrying PayPal's name/message/details."""

    kind = ErrorKind.PROTOCOL_ERROR


class UnexpectedStatus(ProcessorError):
    """Raised for an HTTP status outside the documented set."""

    kind = ErrorKind.UNEXPECTED_STATUS


class DiffNotAllowed(ProcessorError):
    """
    Raised when an order update touches a field, or uses an operation on a
    field, that PayPal does not allow to be patched.

    Nothing is sent to PayPal when this is raised.
    """

    kind = ErrorKind.DIFF_NOT_ALLOWED

    def __init__(self, message: str, field_path: str = "", operation: str = ""):
        super().__init__(
            ErrorInfo(
                numeric_code=ERR_CANT_UPDATE,
                message=message,
                kind=ErrorKind.DIFF_NOT_ALLOWED,
            )
        )
        self.field_path = field_path
        self.operation = operation
