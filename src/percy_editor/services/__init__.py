"""Service layer helpers (bridge protocol, session, settings, etc.)."""

from .bridge_types import (
    BridgeMessage,
    EditorClose,
    EditorFileChanged,
    EditorFileDirty,
    EditorInit,
    EditorRender,
    EditorSave,
    EditorSaved,
    Executor,
    MessageType,
)
from .errors import (
    BridgeError,
    ConfigParseError,
    DecodeError,
    DocumentIOError,
    SessionStateError,
    UnknownMessageTypeError,
    WriteConflictError,
)

__all__ = [
    "BridgeError",
    "BridgeMessage",
    "ConfigParseError",
    "DecodeError",
    "DocumentIOError",
    "EditorClose",
    "EditorFileChanged",
    "EditorFileDirty",
    "EditorInit",
    "EditorRender",
    "EditorSave",
    "EditorSaved",
    "Executor",
    "MessageType",
    "SessionStateError",
    "UnknownMessageTypeError",
    "WriteConflictError",
]
