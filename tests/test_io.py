from __future__ import annotations

import json
import logging
import zipfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from docgraph.io import SNAPSHOT_VERSION, SnapshotError, SnapshotStore, export_documents
from docgraph.workflow import (
    AppState,
    CreateProject,
    EndStreamingContent,
    EndStreamingOutline,
    DispatchToProject,
    Source,
    StartStreaming,
    reduce_app,
)
from docgraph.status import StreamingSource

AT = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def app_state(small_graph) -> AppState:
    app = reduce_app(AppState(), CreateProject("p1", "A todo app", small_graph, language="vi"))
    for action in (
        StartStreaming("A", StreamingSource.OUTLINE),
        EndStreamingOutline("A", "1. Intro", AT),
        StartStreaming("A", StreamingSource.CONTENT),
        EndStreamingContent("A", "Body", AT, sources=(Source("https://a.example", "A"),)),
    ):
        app = reduce_app(app, DispatchToProject("p1", action))
    return app


def test_snapshot_round_trip(tmp_path: Path, app_state: AppState) -> None:
    store = SnapshotStore(tmp_path / "nested" / "state.json")

    path = store.save(app_state, saved_at=AT)
    restored = store.load()

    assert path.exists()
    assert not (path.parent / "state.json.tmp").exists()
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == SNAPSHOT_VERSION
    assert restored == app_state
    assert restored.projects["p1"].document_for("A").sources == (Source("https://a.example", "A"),)


def test_snapshot_size_guard(tmp_path: Path, app_state: AppState) -> None:
    store = SnapshotStore(tmp_path / "state.json", max_bytes=64)

    with pytest.raises(SnapshotError, match="exceeds"):
        store.save(app_state)
    assert store.exists() is False


def test_snapshot_version_mismatch_warns(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps({"version": "0.9.0", "saved_at": AT.isoformat(), "app": {"projects": []}}),
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING, logger="docgraph.io"):
        restored = SnapshotStore(path).load()

    assert restored == AppState()
    assert "Snapshot version mismatch. Expected 1.0.0, got 0.9.0" in caplog.text


def test_snapshot_invalid_or_missing(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    store = SnapshotStore(path)

    with pytest.raises(FileNotFoundError):
        store.load()
    assert store.load_or_empty() == AppState()

    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SnapshotError):
        store.load()

    store.clear()
    assert store.exists() is False


def test_snapshot_with_malformed_project_raises_snapshot_error(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps({"version": SNAPSHOT_VERSION, "saved_at": AT.isoformat(), "app": {"projects": [{"description": "x"}]}}),
        encoding="utf-8",
    )

    with pytest.raises(SnapshotError, match="malformed project"):
        SnapshotStore(path).load()


def test_export_json_bundle(tmp_path: Path, app_state: AppState) -> None:
    documents = app_state.projects["p1"].documents

    path = export_documents(documents, tmp_path, exported_at=AT)

    assert path.name == "docgraph-documents-2024-05-01.json"
    bundle = json.loads(path.read_text(encoding="utf-8"))
    assert bundle["document_count"] == 1
    assert bundle["documents"][0]["content"] == "Body"


def test_export_zip_of_markdown(tmp_path: Path, app_state: AppState) -> None:
    documents = app_state.projects["p1"].documents

    path = export_documents(documents, tmp_path / "out", fmt="zip", exported_at=AT)

    with zipfile.ZipFile(path) as archive:
        names = archive.namelist()
        markdown = archive.read("01-Doc-A.md").decode("utf-8")
    assert names == ["01-Doc-A.md", "README.md"]
    assert markdown.startswith("# Doc A\n")
    assert "## Outline\n\n1. Intro" in markdown
    assert "- [A](https://a.example)" in markdown
    assert "**Version:** 2" in markdown


def test_export_rejects_empty_and_unknown_format(tmp_path: Path, app_state: AppState) -> None:
    with pytest.raises(ValueError, match="No documents"):
        export_documents([], tmp_path)
    with pytest.raises(ValueError, match="Unsupported"):
        export_documents(app_state.projects["p1"].documents, tmp_path, fmt="pdf")  # type: ignore[arg-type]
