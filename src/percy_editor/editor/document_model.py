"""Value objects describing the file under edit."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

__all__ = ["EditorFile", "ENVIRONMENTS_FILE_NAME", "PERCYRC_FILE_NAME"]

ENVIRONMENTS_FILE_NAME = "environments.yaml"
PERCYRC_FILE_NAME = ".percyrc"


def _normalize_path(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()


@dataclass(slots=True, frozen=True)
class EditorFile:
    """Identifies the document under edit for the lifetime of a session."""

    path: Path
    parent: Path = field(init=False)
    name: str = field(init=False)
    is_environments_file: bool = field(init=False)

    def __post_init__(self) -> None:
        resolved = _normalize_path(self.path)
        object.__setattr__(self, "path", resolved)
        object.__setattr__(self, "parent", resolved.parent)
        object.__setattr__(self, "name", resolved.name)
        # Case-sensitive: "Environments.yaml" is an ordinary file.
        object.__setattr__(self, "is_environments_file", resolved.name == ENVIRONMENTS_FILE_NAME)

    @classmethod
    def from_path(cls, path: Path | str) -> "EditorFile":
        return cls(path=Path(path))

    @property
    def environments_path(self) -> Path:
        """Location of the sibling ``environments.yaml`` for this file."""

        return self.parent / ENVIRONMENTS_FILE_NAME

    def to_dict(self) -> dict[str, object]:
        return {
            "path": str(self.path),
            "parent": str(self.parent),
            "name": self.name,
            "is_environments_file": self.is_environments_file,
        }
