"""Tagged result values returned by every service operation.

A service call yields either ``Ok`` (the value plus any warnings about
best-effort side operations that did not go through) or ``Err`` (an error
code and message). Callers branch on ``result.ok`` instead of catching
exceptions.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel

from zettelstore_mcp.exceptions import ErrorCode, ZettelkastenError

T = TypeVar("T")


def _to_payload(value: Any) -> Any:
    """Render a result value as JSON-friendly data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_to_payload(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_payload(item) for key, item in value.items()}
    return value


@dataclass
class Ok(Generic[T]):
    """Successful outcome.

    Attributes:
        value: The operation's payload.
        warnings: Human-readable notes about optional steps that failed
            (tag creation, inverse link, embedding generation).
    """

    value: T
    warnings: List[str] = field(default_factory=list)

    ok: ClassVar[bool] = True

    def unwrap(self) -> T:
        return self.value

    def to_envelope(self, key: str = "result") -> Dict[str, Any]:
        """Render as ``{"success": True, <key>: ..., "warnings": [...]}``."""
        envelope: Dict[str, Any] = {"success": True, key: _to_payload(self.value)}
        if self.warnings:
            envelope["warnings"] = list(self.warnings)
        return envelope


@dataclass
class Err:
    """Failed outcome.

    Attributes:
        code: Machine-readable error code.
        message: Human-readable description.
        details: Extra context (ids, HTTP status, store message).
    """

    code: ErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    ok: ClassVar[bool] = False

    @classmethod
    def from_exception(cls, error: ZettelkastenError) -> "Err":
        return cls(code=error.code, message=error.message, details=dict(error.details))

    def unwrap(self) -> Any:
        """Re-raise this error as a ``ZettelkastenError``."""
        raise ZettelkastenError(self.message, code=self.code, details=self.details)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def to_envelope(self, key: Optional[str] = None) -> Dict[str, Any]:
        """Render as ``{"error": message}``."""
        return {"error": self.message}


Result = Union[Ok[T], Err]
