"""Tests for the editor provider and the per-file editor registry."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from percy_editor.editor.provider import (
    EDITOR_NAME,
    EDITOR_TYPE_ID,
    EditorRegistry,
    PercyEditorProvider,
    PercyFileEditor,
)
from percy_editor.services.session import SessionState
from percy_editor.theme.monitor import stylesheet_for
from tests.helpers import MemoryDocumentStore, RecordingChannel, write_text

PAGE_URL = "http://127.0.0.1:9999/percy/"


def _provider(project: Path, store: MemoryDocumentStore, **kwargs) -> PercyEditorProvider:
    kwargs.setdefault("page_url", PAGE_URL)
    kwargs.setdefault("stylesheet_url", lambda dark: PAGE_URL + stylesheet_for(dark))
    return PercyEditorProvider(store, project_root=project, **kwargs)


def _yaml(project: Path, name: str = "app.yaml", text: str = "a: 1\n") -> Path:
    return write_text(project / name, text)


@pytest.mark.parametrize("name", ["app.yaml", "app.yml", "APP.YAML", "env/Deploy.Yml"])
def test_accepts_yaml_files(project: Path, memory_store: MemoryDocumentStore, name: str) -> None:
    path = _yaml(project, name)

    assert _provider(project, memory_store).accept(path)


def test_rejects_other_files(project: Path, memory_store: MemoryDocumentStore) -> None:
    provider = _provider(project, memory_store)
    (project / "folder.yaml").mkdir()

    assert not provider.accept(write_text(project / "notes.txt", "x"))
    assert not provider.accept(write_text(project / "yaml", "x"))
    assert not provider.accept(project / "missing.yaml")
    assert not provider.accept(project / "folder.yaml")


def test_rejects_files_over_the_size_limit(project: Path, memory_store: MemoryDocumentStore) -> None:
    path = _yaml(project, text="x" * 64)

    assert not _provider(project, memory_store, max_file_size=63).accept(path)
    assert _provider(project, memory_store, max_file_size=64).accept(path)


def test_headless_editor_queues_render(project: Path) -> None:
    path = _yaml(project)
    store = MemoryDocumentStore({path: "a: 1\n"})
    sent: List[str] = []

    editor = _provider(project, store).create_editor(path)
    editor.session.outbound.set_sink(sent.append)
    editor.session.handle_inbound_message({"type": "PercyEditorInit"})

    assert editor.adapter is None
    assert editor.name == EDITOR_NAME
    assert editor.get_content() == "a: 1\n"
    assert editor.session.state is SessionState.RENDERED
    assert len(sent) == 1


def test_editor_with_channel_is_attached(project: Path, channel: RecordingChannel) -> None:
    path = _yaml(project)
    store = MemoryDocumentStore({path: "a: 1\n"})
    provider = _provider(project, store)

    editor = provider.create_editor(path, channel=channel)
    channel.post({"type": "percyeditorinit"})

    assert provider.editor_type_id == EDITOR_TYPE_ID
    assert editor.adapter is not None and editor.adapter.attached
    assert channel.loaded == [PAGE_URL]
    assert channel.sent_messages()[0]["fileName"] == "app.yaml"


def test_channel_requires_page_urls(project: Path, channel: RecordingChannel) -> None:
    path = _yaml(project)
    store = MemoryDocumentStore({path: "a"})
    provider = PercyEditorProvider(store, project_root=project)

    with pytest.raises(ValueError):
        provider.create_editor(path, channel=channel)

    assert store.listener_count(path) == 0


def test_editor_modified_tracks_dirty_messages(project: Path) -> None:
    path = _yaml(project)
    editor = _provider(project, MemoryDocumentStore({path: "a"})).create_editor(path)
    editor.session.handle_inbound_message({"type": "PercyEditorInit"})

    editor.session.handle_inbound_message({"type": "PercyEditorFileDirty", "dirty": True})
    assert editor.is_modified()

    editor.dispose()
    assert not editor.is_valid()


def test_registry_keeps_one_editor_per_file(project: Path) -> None:
    path = _yaml(project)
    registry = EditorRegistry(_provider(project, MemoryDocumentStore({path: "a"})))

    first = registry.open(path)
    second = registry.open(project / "." / "app.yaml")

    assert first is second
    assert len(registry) == 1
    assert path in registry
    assert registry.get(str(path)) is first
    assert list(registry) == [first]
    assert 42 not in registry


def test_registry_rejects_unsupported_files(project: Path) -> None:
    path = write_text(project / "notes.txt", "x")
    registry = EditorRegistry(_provider(project, MemoryDocumentStore({path: "x"})))

    with pytest.raises(ValueError):
        registry.open(path)

    assert len(registry) == 0


def test_close_disposes_and_notifies(project: Path) -> None:
    path = _yaml(project)
    registry = EditorRegistry(_provider(project, MemoryDocumentStore({path: "a"})))
    closed: List[PercyFileEditor] = []
    registry.on_editor_closed(closed.append)
    editor = registry.open(path)

    assert registry.close(path)
    assert not registry.close(path)

    assert closed == [editor]
    assert editor.session.disposed
    assert path not in registry


def test_close_message_from_content_closes_the_editor(project: Path, channel: RecordingChannel) -> None:
    path = _yaml(project)
    registry = EditorRegistry(_provider(project, MemoryDocumentStore({path: "a"})))
    closed: List[PercyFileEditor] = []
    registry.on_editor_closed(closed.append)
    editor = registry.open(path, channel=channel)

    channel.post({"type": "PercyEditorClose"})

    assert closed == [editor]
    assert len(registry) == 0
    assert channel.dispose_calls == 1


def test_failing_close_listener_does_not_block_others(
    project: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = _yaml(project)
    registry = EditorRegistry(_provider(project, MemoryDocumentStore({path: "a"})))
    seen: List[PercyFileEditor] = []

    def _broken(_editor: PercyFileEditor) -> None:
        raise RuntimeError("boom")

    registry.on_editor_closed(_broken)
    registry.on_editor_closed(seen.append)
    registry.open(path)

    registry.close(path)

    assert len(seen) == 1
    assert "Editor close listener failed" in caplog.text


def test_close_all_and_unsubscribe(project: Path) -> None:
    first = _yaml(project, "a.yaml")
    second = _yaml(project, "b.yml")
    registry = EditorRegistry(_provider(project, MemoryDocumentStore({first: "a", second: "b"})))
    closed: List[PercyFileEditor] = []
    subscription = registry.on_editor_closed(closed.append)
    registry.open(first)
    registry.open(second)

    subscription.unsubscribe()
    registry.close_all()

    assert len(registry) == 0
    assert closed == []
