from __future__ import annotations

import json
from pathlib import Path

import pytest

from docgraph.cli import main
from docgraph.io import SnapshotStore
from docgraph.status import NodeStatus, WorkflowStatus


@pytest.fixture
def state_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("DOCGRAPH_PROVIDER", "mock")
    monkeypatch.chdir(tmp_path)
    return tmp_path / "state" / "docgraph.json"


def _run(state_file: Path, *argv: str) -> int:
    return main([*argv, "--state", str(state_file)])


def test_new_runs_until_first_review_gate(state_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(state_file, "new", "A todo app", "--project-id", "demo") == 0

    out = capsys.readouterr().out
    assert out.splitlines()[0] == "Project demo [PAUSED] A todo app"
    assert any(line.split()[:2] == ["n2", "AWAITING_OUTLINE_REVIEW"] for line in out.splitlines())
    project = SnapshotStore(state_file).load().projects["demo"]
    assert project.document_for("n1").version == 1


def test_approve_and_status_continue_from_snapshot(state_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(state_file, "new", "A todo app", "--project-id", "demo")
    capsys.readouterr()

    assert _run(state_file, "approve", "n2", "--stage", "outline") == 0
    assert _run(state_file, "status") == 0

    lines = capsys.readouterr().out.splitlines()
    status_lines = lines[len(lines) // 2 :]
    assert any(line.split()[:3] == ["n2", "AWAITING_REVIEW", "v2"] for line in status_lines)


def test_reject_records_feedback(state_file: Path) -> None:
    _run(state_file, "new", "A todo app", "--project-id", "demo")

    assert _run(state_file, "reject", "n2", "--stage", "outline", "--feedback", "Add a security section") == 0

    project = SnapshotStore(state_file).load().projects["demo"]
    assert project.feedback_history["n2"] == ("Add a security section",)
    assert project.document_for("n2").version == 2


def test_auto_approve_completes_and_exports_zip(state_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(state_file, "new", "A todo app", "--project-id", "demo", "--auto-approve") == 0
    assert capsys.readouterr().out.startswith("Project demo [COMPLETED]")

    assert _run(state_file, "export", "--format", "zip", "--output", str(tmp_path / "out")) == 0

    exported = Path(capsys.readouterr().out.strip())
    assert exported.parent == tmp_path / "out"
    assert exported.suffix == ".zip"


def test_chat_prints_answer_and_persists_history(state_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(state_file, "new", "A todo app", "--project-id", "demo")
    capsys.readouterr()

    assert _run(state_file, "chat", "n1", "Who are the users?") == 0

    assert capsys.readouterr().out.strip()
    history = SnapshotStore(state_file).load().projects["demo"].document_for("n1").chat_history
    assert [message.role for message in history] == ["user", "model"]


def test_reset_returns_project_to_idle(state_file: Path) -> None:
    _run(state_file, "new", "A todo app", "--project-id", "demo")

    assert _run(state_file, "reset") == 0

    payload = json.loads(state_file.read_text(encoding="utf-8"))
    project = payload["app"]["projects"][0]
    assert project["workflow_status"] == "IDLE"
    assert project["documents"] == []
    assert project["epoch"] == 1


def test_resume_restarts_a_reset_project(state_file: Path) -> None:
    _run(state_file, "new", "A todo app", "--project-id", "demo")
    _run(state_file, "reset")

    assert _run(state_file, "resume") == 0

    project = SnapshotStore(state_file).load().projects["demo"]
    assert project.workflow_status is WorkflowStatus.PAUSED
    assert project.node_status("n2") is NodeStatus.AWAITING_OUTLINE_REVIEW
    assert project.epoch == 1


def test_missing_snapshot_reports_error(state_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(state_file, "status") == 1

    assert capsys.readouterr().err.startswith("Error: Snapshot not found")


def test_unknown_project_reports_error(state_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _run(state_file, "new", "A todo app", "--project-id", "demo")

    assert _run(state_file, "status", "--project", "ghost") == 1
    assert "Unknown project 'ghost'" in capsys.readouterr().err


def test_malformed_snapshot_reports_error(state_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state_file.parent.mkdir(parents=True)
    state_file.write_text(
        json.dumps({"version": "1.0.0", "saved_at": "2024-05-01T00:00:00+00:00", "app": {"projects": [{"description": "x"}]}}),
        encoding="utf-8",
    )

    assert _run(state_file, "status") == 1
    assert capsys.readouterr().err.startswith("Error: Snapshot")
