"""Editor package containing the document model, store and provider."""

from importlib import import_module
from typing import Any

from . import document_model, document_store

__all__ = ["document_model", "document_store"]


def __getattr__(name: str) -> Any:
    if name == "provider":
        module = import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
