"""Custom exceptions for the Zettelstore MCP server.

Provides a structured exception hierarchy with error codes and
machine-readable error information. Exceptions are raised inside the
storage and service layers and converted into ``Err`` results at the
service boundary (see ``zettelstore_mcp.models.result``).
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_VALIDATION_FAILED = 1002
    NOTE_TITLE_REQUIRED = 1004
    NOTE_CONTENT_REQUIRED = 1005

    # Link errors (2xxx)
    LINK_INVALID = 2001
    LINK_SELF_REFERENCE = 2004

    # Tag errors (3xxx)
    TAG_NOT_FOUND = 3001
    TAG_INVALID = 3002

    # Store errors (4xxx)
    STORE_REQUEST_FAILED = 4001
    STORE_CONNECTION_FAILED = 4004
    STORE_UNEXPECTED_RESPONSE = 4008

    # Embedding errors (5xxx)
    EMBEDDING_FAILED = 5102

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001
    CONFIG_MISSING = 6002

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    INVALID_NOTE_TYPE = 7002
    INVALID_LINK_TYPE = 7003
    INVALID_DIRECTION = 7004
    UNSUPPORTED_FORMAT = 7006
    INVALID_THRESHOLD = 7007

    # Anything not covered above
    INTERNAL_ERROR = 9001


class ZettelkastenError(Exception):
    """Base exception for all Zettelstore errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NoteNotFoundError(ZettelkastenError):
    """Raised when a note cannot be found."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id}
        )
        self.note_id = note_id


class NoteValidationError(ZettelkastenError):
    """Raised when note data fails validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.NOTE_VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class LinkError(ZettelkastenError):
    """Raised for link-related errors."""

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        target_id: Optional[str] = None,
        link_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.LINK_INVALID
    ):
        details = {}
        if source_id:
            details["source_id"] = source_id
        if target_id:
            details["target_id"] = target_id
        if link_type:
            details["link_type"] = link_type

        super().__init__(message, code=code, details=details)
        self.source_id = source_id
        self.target_id = target_id
        self.link_type = link_type


class TagError(ZettelkastenError):
    """Raised for tag-related errors."""

    def __init__(
        self,
        message: str,
        tag_name: Optional[str] = None,
        code: ErrorCode = ErrorCode.TAG_INVALID
    ):
        details = {}
        if tag_name:
            details["tag_name"] = tag_name

        super().__init__(message, code=code, details=details)
        self.tag_name = tag_name


class StoreError(ZettelkastenError):
    """Raised when the remote data store rejects a request or cannot be reached.

    Attributes:
        method: HTTP verb of the failed request
        path: Resource path (e.g. ``/notes``)
        status_code: HTTP status, or None for transport failures
        store_message: The ``message`` field of the store's error body, if any
        original_error: The underlying exception for transport failures
    """

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
        store_message: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORE_REQUEST_FAILED,
        original_error: Optional[Exception] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        details: Dict[str, Any] = {}
        if method:
            details["method"] = method
        if path:
            details["path"] = path
        if status_code is not None:
            details["status_code"] = status_code
        if store_message:
            details["store_message"] = store_message[:200]
        if original_error:
            details["original_error"] = str(original_error)[:200]
        if extra:
            details.update(extra)

        super().__init__(message, code=code, details=details)
        self.method = method
        self.path = path
        self.status_code = status_code
        self.store_message = store_message
        self.original_error = original_error


class EmbeddingError(ZettelkastenError):
    """Raised by embedding providers when a vector cannot be produced."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_FAILED,
        model: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if model:
            details["model"] = model
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.model = model
        self.original_error = original_error


class ConfigurationError(ZettelkastenError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class ValidationError(ZettelkastenError):
    """Raised for general validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value
