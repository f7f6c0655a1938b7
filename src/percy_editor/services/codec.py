"""Message codec translating bridge envelopes to and from their JSON wire form."""

from __future__ import annotations

import json
import logging
from dataclasses import fields
from typing import Any, Mapping

import jsonschema

from .bridge_types import MESSAGE_CLASSES, BridgeMessage, Direction, MessageType
from .errors import DecodeError, UnknownMessageTypeError

__all__ = ["encode", "decode", "dumps", "loads", "MESSAGE_SCHEMAS"]

_LOGGER = logging.getLogger(__name__)

# Python attribute name -> wire key. Attributes missing here map to themselves.
_WIRE_KEYS: Mapping[str, str] = {
    "edit_mode": "editMode",
    "env_file_mode": "envFileMode",
    "app_name": "appName",
    "file_name": "fileName",
    "path_sep": "pathSep",
    "file_content": "fileContent",
    "env_file_content": "envFileContent",
    "percy_config": "percyConfig",
    "app_percy_config": "appPercyConfig",
    "new_file_name": "newFileName",
    "dirty": "dirty",
}

_STRING = {"type": "string"}
_BOOLEAN = {"type": "boolean"}
_OBJECT = {"type": "object"}


def _schema(properties: Mapping[str, Any] | None = None, *, required: tuple[str, ...] = ()) -> dict[str, Any]:
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {"type": _STRING, **dict(properties or {})},
        "required": ["type", *required],
    }
    return schema


MESSAGE_SCHEMAS: Mapping[MessageType, Mapping[str, Any]] = {
    MessageType.INIT: _schema(),
    MessageType.RENDER: _schema(
        {
            "editMode": _BOOLEAN,
            "envFileMode": _BOOLEAN,
            "appName": _STRING,
            "fileName": _STRING,
            "pathSep": _STRING,
            "fileContent": _STRING,
            "envFileContent": _STRING,
            "percyConfig": _OBJECT,
            "appPercyConfig": _OBJECT,
        },
        required=(
            "editMode",
            "envFileMode",
            "appName",
            "fileName",
            "pathSep",
            "fileContent",
            "percyConfig",
            "appPercyConfig",
        ),
    ),
    MessageType.SAVE: _schema({"fileContent": _STRING}, required=("fileContent",)),
    MessageType.SAVED: _schema(
        {"fileContent": _STRING, "newFileName": _STRING},
        required=("fileContent", "newFileName"),
    ),
    MessageType.FILE_CHANGED: _schema({"fileContent": _STRING}, required=("fileContent",)),
    MessageType.FILE_DIRTY: _schema({"dirty": _BOOLEAN}, required=("dirty",)),
    MessageType.CLOSE: _schema(),
}

_VALIDATORS = {
    message_type: jsonschema.Draft202012Validator(schema)
    for message_type, schema in MESSAGE_SCHEMAS.items()
}


def encode(message: BridgeMessage) -> dict[str, Any]:
    """Return the JSON-object wire form of ``message``.

    Optional fields that are ``None`` are omitted rather than sent as null.
    """

    payload: dict[str, Any] = {"type": message.message_type.value}
    for item in fields(message):
        value = getattr(message, item.name)
        if value is None:
            continue
        if isinstance(value, Mapping):
            value = dict(value)
        payload[_WIRE_KEYS.get(item.name, item.name)] = value
    return payload


def dumps(message: BridgeMessage) -> str:
    """Serialize ``message`` to a JSON string safe to embed in a script literal."""

    return json.dumps(encode(message))


def loads(raw: str | bytes | bytearray, *, direction: Direction | None = None) -> BridgeMessage:
    """Parse a JSON string and decode it into a message."""

    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"Message is not valid JSON: {exc}") from exc
    return decode(payload, direction=direction)


def decode(
    payload: Mapping[str, Any] | str | bytes | bytearray,
    *,
    direction: Direction | None = None,
) -> BridgeMessage:
    """Decode a wire payload into its message dataclass.

    The ``type`` discriminator is matched case-insensitively. Raises
    :class:`UnknownMessageTypeError` for unrecognised types and
    :class:`DecodeError` for any other malformed payload. When ``direction``
    is given, a message travelling the other way is a :class:`DecodeError` too.
    """

    if isinstance(payload, (str, bytes, bytearray)):
        return loads(payload, direction=direction)
    if not isinstance(payload, Mapping):
        raise DecodeError(f"Message must be a JSON object, got {type(payload).__name__}")

    raw_type = payload.get("type")
    if not isinstance(raw_type, str):
        raise DecodeError("Message is missing a string 'type' discriminator")
    message_type = MessageType.lookup(raw_type)
    if message_type is None:
        raise UnknownMessageTypeError(raw_type)

    message_cls = MESSAGE_CLASSES[message_type]
    if direction is not None and message_cls.direction is not direction:
        raise DecodeError(
            f"{message_type.value} is an {message_cls.direction.value} message",
            details={"type": message_type.value},
        )

    errors = sorted(_VALIDATORS[message_type].iter_errors(dict(payload)), key=lambda err: list(err.path))
    if errors:
        first = errors[0]
        location = "/".join(str(part) for part in first.path) or "<root>"
        raise DecodeError(
            f"Invalid {message_type.value} payload at {location}: {first.message}",
            details={"type": message_type.value, "errors": [err.message for err in errors]},
        )

    kwargs: dict[str, Any] = {}
    for item in fields(message_cls):
        key = _WIRE_KEYS.get(item.name, item.name)
        if key in payload:
            kwargs[item.name] = payload[key]
    _LOGGER.debug("Decoded %s message", message_type.value)
    return message_cls(**kwargs)
