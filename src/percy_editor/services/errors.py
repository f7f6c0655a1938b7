"""Error taxonomy for the host/content message bridge.

Every failure is scoped to a single editor session. The classes carry a
machine-readable ``error_code`` so adapters can report them to the embedded
content or to the host UI without string matching.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Mapping

__all__ = [
    "ErrorCode",
    "BridgeError",
    "DocumentIOError",
    "ConfigParseError",
    "DecodeError",
    "UnknownMessageTypeError",
    "WriteConflictError",
    "SessionStateError",
]


class ErrorCode:
    """Constants for error codes attached to bridge failures."""

    IO_ERROR = "io_error"
    CONFIG_PARSE_ERROR = "config_parse_error"
    DECODE_ERROR = "decode_error"
    UNKNOWN_MESSAGE_TYPE = "unknown_message_type"
    WRITE_CONFLICT = "write_conflict"
    INVALID_STATE = "invalid_state"


class BridgeError(RuntimeError):
    """Base class for all bridge failures."""

    error_code: ClassVar[str] = "bridge_error"

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details) if isinstance(details, Mapping) else {}

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class DocumentIOError(BridgeError):
    """Reading or writing a document (or its environments file) failed."""

    error_code = ErrorCode.IO_ERROR

    def __init__(self, message: str, *, path: Path | str | None = None, details: Mapping[str, Any] | None = None) -> None:
        merged = dict(details or {})
        if path is not None:
            merged.setdefault("path", str(path))
        super().__init__(message, details=merged)
        self.path = Path(path) if path is not None else None


class ConfigParseError(BridgeError):
    """A ``.percyrc`` file is not a JSON object."""

    error_code = ErrorCode.CONFIG_PARSE_ERROR

    def __init__(self, message: str, *, path: Path | str, details: Mapping[str, Any] | None = None) -> None:
        merged = dict(details or {})
        merged.setdefault("path", str(path))
        super().__init__(message, details=merged)
        self.path = Path(path)


class DecodeError(BridgeError):
    """An inbound wire message could not be decoded."""

    error_code = ErrorCode.DECODE_ERROR


class UnknownMessageTypeError(DecodeError):
    """The ``type`` discriminator does not name a known message."""

    error_code = ErrorCode.UNKNOWN_MESSAGE_TYPE

    def __init__(self, message_type: Any) -> None:
        super().__init__(f"Unknown message type: {message_type!r}", details={"type": message_type})
        self.message_type = message_type


class WriteConflictError(BridgeError):
    """The document store refused a write."""

    error_code = ErrorCode.WRITE_CONFLICT

    def __init__(self, message: str, *, path: Path | str | None = None) -> None:
        super().__init__(message, details={"path": str(path)} if path is not None else None)
        self.path = Path(path) if path is not None else None


class SessionStateError(BridgeError):
    """A message arrived in a state that does not accept it."""

    error_code = ErrorCode.INVALID_STATE

    def __init__(self, message_type: str, state: str) -> None:
        super().__init__(
            f"{message_type} is not accepted in state {state}",
            details={"type": message_type, "state": state},
        )
        self.message_type = message_type
        self.state = state
