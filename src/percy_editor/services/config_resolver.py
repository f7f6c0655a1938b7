"""Resolve the Percy configuration for a file by walking its ancestor directories."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping

from ..editor.document_model import PERCYRC_FILE_NAME, EditorFile
from ..utils.file_io import read_text
from .errors import ConfigParseError, DocumentIOError

__all__ = ["PERCY_CONFIG", "ResolvedConfig", "ConfigResolver", "resolve_config", "iter_config_dirs"]

_LOGGER = logging.getLogger(__name__)

PERCY_CONFIG: Mapping[str, str] = MappingProxyType(
    {
        "variablePrefix": "_{",
        "variableSuffix": "}_",
        "variableNamePrefix": "$",
        "envVariableName": "env",
        "filenameRegex": r"^[a-zA-Z0-9_.-]*$",
        "propertyNameRegex": r"^[\s]*[a-zA-Z0-9$_.-]*[\s]*$",
    }
)

ConfigReader = Callable[[Path], str]


@dataclass(slots=True, frozen=True)
class ResolvedConfig:
    """Fixed built-in constants plus the merged ``.percyrc`` overlay."""

    percy_config: Mapping[str, Any]
    app_percy_config: Mapping[str, Any]
    sources: tuple[Path, ...] = field(default=())


def iter_config_dirs(start: Path, project_root: Path | None):
    """Yield ``start`` and its ancestors, stopping after ``project_root``.

    When ``project_root`` is not an ancestor the walk ends at the filesystem
    root.
    """

    current = start
    while True:
        yield current
        if project_root is not None and current == project_root:
            return
        parent = current.parent
        if parent == current:
            return
        current = parent


class ConfigResolver:
    """Builds :class:`ResolvedConfig` objects for edited files."""

    def __init__(self, *, reader: ConfigReader | None = None) -> None:
        self._reader = reader or read_text

    def resolve(self, file: EditorFile, project_root: Path | str | None) -> ResolvedConfig:
        root = Path(project_root).expanduser().resolve() if project_root is not None else None
        overlay: dict[str, Any] = {}
        sources: list[Path] = []
        for directory in iter_config_dirs(file.parent, root):
            candidate = directory / PERCYRC_FILE_NAME
            try:
                present = candidate.is_file()
            except OSError as exc:
                raise DocumentIOError(f"Unable to inspect {candidate}: {exc}", path=candidate) from exc
            if not present:
                continue
            loaded = self._load(candidate)
            # Nearer directories were merged first; ancestors only fill gaps.
            for key, value in loaded.items():
                overlay.setdefault(key, value)
            sources.append(candidate)
        _LOGGER.debug(
            "Resolved %d .percyrc file(s) for %s: %s",
            len(sources),
            file.path,
            [str(path) for path in sources],
        )
        return ResolvedConfig(
            percy_config=dict(PERCY_CONFIG),
            app_percy_config=overlay,
            sources=tuple(sources),
        )

    def _load(self, path: Path) -> dict[str, Any]:
        try:
            text = self._reader(path)
        except UnicodeDecodeError as exc:
            raise ConfigParseError(f"{path} is not valid UTF-8 text: {exc}", path=path) from exc
        except OSError as exc:
            raise DocumentIOError(f"Unable to read {path}: {exc}", path=path) from exc
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigParseError(f"{path} is not valid JSON: {exc}", path=path) from exc
        if not isinstance(data, dict):
            raise ConfigParseError(
                f"{path} must contain a JSON object, got {type(data).__name__}", path=path
            )
        return data


def resolve_config(file: EditorFile, project_root: Path | str | None) -> ResolvedConfig:
    """Resolve the configuration for ``file`` with the default filesystem reader."""

    return ConfigResolver().resolve(file, project_root)
