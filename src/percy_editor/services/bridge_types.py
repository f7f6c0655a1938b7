"""Typed envelopes exchanged between the host and the embedded content."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Mapping, TypeVar, Union

__all__ = [
    "MessageType",
    "Direction",
    "EditorInit",
    "EditorRender",
    "EditorSave",
    "EditorSaved",
    "EditorFileChanged",
    "EditorFileDirty",
    "EditorClose",
    "BridgeMessage",
    "InboundMessage",
    "OutboundMessage",
    "MESSAGE_CLASSES",
    "Executor",
]


TResult = TypeVar("TResult")
Executor = Callable[[Callable[[], TResult]], TResult]


class MessageType(str, Enum):
    """Wire values of the ``type`` discriminator."""

    INIT = "PercyEditorInit"
    RENDER = "PercyEditorRender"
    SAVE = "PercyEditorSave"
    SAVED = "PercyEditorSaved"
    FILE_CHANGED = "PercyEditorFileChanged"
    FILE_DIRTY = "PercyEditorFileDirty"
    CLOSE = "PercyEditorClose"

    @classmethod
    def lookup(cls, value: str) -> "MessageType | None":
        """Case-insensitive lookup of a wire value."""

        return _LOWERCASE_TYPES.get(value.lower())


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


_LOWERCASE_TYPES: dict[str, MessageType] = {member.value.lower(): member for member in MessageType}


@dataclass(slots=True, frozen=True)
class EditorInit:
    """Content finished loading and asks for the document."""

    message_type: ClassVar[MessageType] = MessageType.INIT
    direction: ClassVar[Direction] = Direction.INBOUND


@dataclass(slots=True, frozen=True)
class EditorRender:
    """Everything the content needs to render the editor."""

    message_type: ClassVar[MessageType] = MessageType.RENDER
    direction: ClassVar[Direction] = Direction.OUTBOUND

    env_file_mode: bool
    app_name: str
    file_name: str
    path_sep: str
    file_content: str
    percy_config: Mapping[str, Any]
    app_percy_config: Mapping[str, Any]
    env_file_content: str | None = None
    edit_mode: bool = True


@dataclass(slots=True, frozen=True)
class EditorSave:
    """Content asks the host to persist ``file_content``."""

    message_type: ClassVar[MessageType] = MessageType.SAVE
    direction: ClassVar[Direction] = Direction.INBOUND

    file_content: str


@dataclass(slots=True, frozen=True)
class EditorSaved:
    """Acknowledges a save with the persisted content."""

    message_type: ClassVar[MessageType] = MessageType.SAVED
    direction: ClassVar[Direction] = Direction.OUTBOUND

    file_content: str
    new_file_name: str


@dataclass(slots=True, frozen=True)
class EditorFileChanged:
    """The document changed outside the embedded content."""

    message_type: ClassVar[MessageType] = MessageType.FILE_CHANGED
    direction: ClassVar[Direction] = Direction.OUTBOUND

    file_content: str


@dataclass(slots=True, frozen=True)
class EditorFileDirty:
    """Content reports whether it holds unsaved changes."""

    message_type: ClassVar[MessageType] = MessageType.FILE_DIRTY
    direction: ClassVar[Direction] = Direction.INBOUND

    dirty: bool


@dataclass(slots=True, frozen=True)
class EditorClose:
    """Content asks the host to close its tab."""

    message_type: ClassVar[MessageType] = MessageType.CLOSE
    direction: ClassVar[Direction] = Direction.INBOUND


InboundMessage = Union[EditorInit, EditorSave, EditorFileDirty, EditorClose]
OutboundMessage = Union[EditorRender, EditorSaved, EditorFileChanged]
BridgeMessage = Union[InboundMessage, OutboundMessage]

MESSAGE_CLASSES: Mapping[MessageType, type] = {
    MessageType.INIT: EditorInit,
    MessageType.RENDER: EditorRender,
    MessageType.SAVE: EditorSave,
    MessageType.SAVED: EditorSaved,
    MessageType.FILE_CHANGED: EditorFileChanged,
    MessageType.FILE_DIRTY: EditorFileDirty,
    MessageType.CLOSE: EditorClose,
}
