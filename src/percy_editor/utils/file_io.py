"""File IO helpers shared by the document store and the config resolver."""

from __future__ import annotations

import codecs
import hashlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "FileSignature",
    "decode_bytes",
    "decode_document",
    "read_text",
    "write_bytes_atomic",
    "snapshot_file",
    "file_has_changed",
]

_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8-sig",
    codecs.BOM_UTF32_LE: "utf-32-le",
    codecs.BOM_UTF32_BE: "utf-32-be",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
}
_MARKED_ENCODINGS = frozenset({"utf-16-le", "utf-16-be", "utf-32-le", "utf-32-be"})


@dataclass(slots=True, frozen=True)
class FileSignature:
    """Fingerprint of a file used to detect modifications made outside the host."""

    path: Path
    digest: str
    size: int
    modified_at: float


def decode_bytes(raw: bytes, *, encoding: str | None = None) -> str:
    """Decode file bytes, honouring a byte-order mark when one is present.

    Content is otherwise passed through untouched: newlines are not
    normalized so that a save followed by a re-read yields identical text.
    """

    detected = encoding or _detect_encoding(raw)
    text = raw.decode(detected)
    # utf-8-sig already consumed its mark; the UTF-16/32 codecs keep it.
    if encoding is None and detected in _MARKED_ENCODINGS and text.startswith("\ufeff"):
        return text[1:]
    return text


def decode_document(raw: bytes) -> str:
    """Decode an edited document as UTF-8, keeping a leading U+FEFF.

    Saves encode the content back as UTF-8, so text read here is written back
    byte for byte.
    """

    return raw.decode("utf-8")


def read_text(path: Path | str, *, encoding: str | None = None) -> str:
    """Read ``path`` and decode it with :func:`decode_bytes`."""

    return decode_bytes(Path(path).read_bytes(), encoding=encoding)


def write_bytes_atomic(path: Path | str, data: bytes) -> Path:
    """Write ``data`` through a temporary sibling file and atomically replace ``path``."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return target


def snapshot_file(path: Path | str) -> FileSignature:
    """Compute a :class:`FileSignature` for the provided path."""

    target = Path(path)
    data = target.read_bytes()
    digest = hashlib.sha256(data).hexdigest()
    stat = target.stat()
    return FileSignature(path=target, digest=digest, size=stat.st_size, modified_at=stat.st_mtime)


def file_has_changed(signature: FileSignature) -> bool:
    """Return ``True`` if the file represented by ``signature`` has changed on disk."""

    try:
        stat = signature.path.stat()
    except FileNotFoundError:
        return True

    if stat.st_mtime != signature.modified_at or stat.st_size != signature.size:
        return True

    current_digest = hashlib.sha256(signature.path.read_bytes()).hexdigest()
    return current_digest != signature.digest


def _detect_encoding(raw: bytes) -> str:
    for bom, encoding in _BOM_MAP.items():
        if raw.startswith(bom):
            return encoding
    return "utf-8"
