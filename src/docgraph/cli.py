"""Command line interface for docgraph workflows.

Every invocation loads the snapshot file, applies one intent and saves the
result, so a workflow can be advanced step by step from the shell.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

from dotenv import load_dotenv

from .config import DocGraphConfig, LLMConfig, WorkflowConfig
from .graph import build_default_graph
from .graph.templates import LANGUAGE_NAMES
from .io import SnapshotStore, export_documents
from .status import ReviewStage
from .workflow import AppStore, CreateProject, ProjectState, ResetWorkflow, WorkflowOrchestrator

__all__ = ["build_parser", "main"]

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docgraph",
        description="Drive human-in-the-loop document generation workflows.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command")

    new_parser = _add_command(subparsers, "new", "Create a project and run it until the first review gate.")
    new_parser.add_argument("description", help="Free-text project description.")
    new_parser.add_argument("--project-id", dest="project_id", default=None, help="Explicit project id.")
    new_parser.add_argument(
        "--language",
        choices=sorted(LANGUAGE_NAMES),
        default=None,
        help="Output language (defaults to DOCGRAPH_LANGUAGE or en).",
    )

    _add_command(subparsers, "status", "Show node and workflow status of a project.")
    _add_command(subparsers, "resume", "Start an IDLE workflow or continue a RUNNING one.")

    approve_parser = _add_command(subparsers, "approve", "Approve the outline or content of a node.")
    approve_parser.add_argument("node_id", help="Node awaiting review.")
    _add_stage_argument(approve_parser)

    reject_parser = _add_command(subparsers, "reject", "Reject a node's outline or content with feedback.")
    reject_parser.add_argument("node_id", help="Node awaiting review.")
    _add_stage_argument(reject_parser)
    reject_parser.add_argument("--feedback", required=True, help="What should change.")

    skip_parser = _add_command(subparsers, "skip", "Skip a PENDING node.")
    skip_parser.add_argument("node_id", help="Node to skip.")

    chat_parser = _add_command(subparsers, "chat", "Ask a question about a node's document.")
    chat_parser.add_argument("node_id", help="Node whose document is discussed.")
    chat_parser.add_argument("message", help="Question to ask.")

    _add_command(subparsers, "reset", "Return a project to IDLE and discard its documents.")

    export_parser = _add_command(subparsers, "export", "Export a project's documents.")
    export_parser.add_argument("--format", dest="fmt", choices=("json", "zip"), default="json")
    export_parser.add_argument("--output", default=None, help="Target directory (defaults to DOCGRAPH_EXPORT_ROOT).")

    return parser


def _add_command(subparsers, name: str, help_text: str) -> argparse.ArgumentParser:
    sub = subparsers.add_parser(
        name,
        help=help_text,
        description=help_text,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    _register_shared_arguments(sub)
    return sub


def _add_stage_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--stage",
        choices=[stage.value for stage in ReviewStage],
        required=True,
        help="Review gate the decision applies to.",
    )


def _register_shared_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--state", default=None, help="Snapshot file (defaults to DOCGRAPH_STATE_ROOT).")
    parser.add_argument("--project", default=None, help="Project id (defaults to the active project).")
    parser.add_argument("--provider", default=None, help="LLM provider to use (openai or mock).")
    parser.add_argument("--model", default=None, help="Model name or identifier to target.")
    parser.add_argument("--base-url", dest="base_url", default=None, help="Optional base URL for API-compatible providers.")
    parser.add_argument(
        "--api-key-env",
        dest="api_key_env",
        default=None,
        help="Environment variable containing the provider API key.",
    )
    parser.add_argument("--temperature", type=float, default=None, help="Sampling temperature.")
    parser.add_argument("--max-tokens", dest="max_tokens", type=int, default=None, help="Maximum tokens per response.")
    parser.add_argument(
        "--auto-approve",
        dest="auto_approve",
        action="store_true",
        help="Approve every review gate automatically.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log workflow progress.")


def _build_config(args: argparse.Namespace) -> DocGraphConfig:
    llm = LLMConfig()
    for name in ("provider", "model", "base_url", "api_key_env", "temperature", "max_tokens"):
        value = getattr(args, name, None)
        if value is not None:
            setattr(llm, name, value)
    workflow = WorkflowConfig()
    if args.auto_approve:
        workflow.auto_approve = True
    if getattr(args, "language", None):
        workflow.language = args.language
    config = DocGraphConfig(llm=llm, workflow=workflow)
    if args.state:
        config = config.with_paths(state_file=Path(args.state))
    return config


class _Session:
    """Snapshot-backed app store plus lazily created orchestrators."""

    def __init__(self, config: DocGraphConfig, *, require_snapshot: bool = True) -> None:
        self.config = config
        self.snapshot = SnapshotStore(config.state_file)
        state = self.snapshot.load() if require_snapshot else self.snapshot.load_or_empty()
        self.app = AppStore(state)

    def project_id(self, requested: str | None) -> str:
        project_id = requested or self.app.state.active_project_id
        if not project_id:
            raise ValueError("No project selected; pass --project or create one with 'docgraph new'")
        if project_id not in self.app.state.projects:
            raise ValueError(f"Unknown project '{project_id}'")
        return project_id

    def orchestrator(self, project_id: str) -> WorkflowOrchestrator:
        return WorkflowOrchestrator(
            self.app.bind(project_id),
            self.config.create_engine(),
            recursion_limit=self.config.workflow.recursion_limit,
        )

    def save(self) -> Path:
        return self.snapshot.save(self.app.state)


def _cmd_new(args: argparse.Namespace, config: DocGraphConfig) -> int:
    session = _Session(config, require_snapshot=False)
    language = config.workflow.language
    project_id = args.project_id or f"proj_{int(datetime.now(timezone.utc).timestamp() * 1000)}"
    if project_id in session.app.state.projects:
        raise ValueError(f"Project '{project_id}' already exists")
    session.app.create_project(
        CreateProject(
            project_id=project_id,
            description=args.description,
            graph=build_default_graph(language),
            language=language,
        )
    )
    orchestrator = session.orchestrator(project_id)
    try:
        asyncio.run(orchestrator.run_to_completion(auto_approve=config.workflow.auto_approve))
    finally:
        session.save()
    _print_project(orchestrator.state)
    return 0


def _cmd_status(args: argparse.Namespace, config: DocGraphConfig) -> int:
    session = _Session(config)
    project = session.app.state.projects[session.project_id(args.project)]
    _print_project(project)
    return 0


def _run_intent(
    args: argparse.Namespace,
    config: DocGraphConfig,
    intent: Callable[[WorkflowOrchestrator], object],
) -> WorkflowOrchestrator:
    session = _Session(config)
    orchestrator = session.orchestrator(session.project_id(args.project))
    try:
        asyncio.run(_with_auto_approve(orchestrator, intent, config.workflow))
    finally:
        session.save()
    return orchestrator


async def _with_auto_approve(
    orchestrator: WorkflowOrchestrator,
    intent: Callable[[WorkflowOrchestrator], object],
    workflow: WorkflowConfig,
) -> None:
    await intent(orchestrator)  # type: ignore[misc]
    if workflow.auto_approve:
        await orchestrator.run_to_completion(auto_approve=True)


def _cmd_resume(args: argparse.Namespace, config: DocGraphConfig) -> int:
    orchestrator = _run_intent(args, config, lambda orch: orch.start())
    _print_project(orchestrator.state)
    return 0


def _cmd_approve(args: argparse.Namespace, config: DocGraphConfig) -> int:
    orchestrator = _run_intent(args, config, lambda orch: orch.approve(args.node_id, ReviewStage(args.stage)))
    _print_project(orchestrator.state)
    return 0


def _cmd_reject(args: argparse.Namespace, config: DocGraphConfig) -> int:
    orchestrator = _run_intent(
        args,
        config,
        lambda orch: orch.reject(args.node_id, ReviewStage(args.stage), args.feedback),
    )
    _print_project(orchestrator.state)
    return 0


def _cmd_skip(args: argparse.Namespace, config: DocGraphConfig) -> int:
    orchestrator = _run_intent(args, config, lambda orch: orch.skip(args.node_id))
    _print_project(orchestrator.state)
    return 0


def _cmd_chat(args: argparse.Namespace, config: DocGraphConfig) -> int:
    session = _Session(config)
    orchestrator = session.orchestrator(session.project_id(args.project))
    try:
        answer = asyncio.run(orchestrator.send_message(args.node_id, args.message))
    finally:
        session.save()
    if answer is None:
        raise RuntimeError(f"Chat about node '{args.node_id}' produced no answer")
    print(answer)
    return 0


def _cmd_reset(args: argparse.Namespace, config: DocGraphConfig) -> int:
    session = _Session(config)
    project_id = session.project_id(args.project)
    project = session.app.bind(project_id)
    project.dispatch(ResetWorkflow())
    session.save()
    _print_project(project.state)
    return 0


def _cmd_export(args: argparse.Namespace, config: DocGraphConfig) -> int:
    session = _Session(config)
    project = session.app.state.projects[session.project_id(args.project)]
    destination = Path(args.output) if args.output else config.export_root
    path = export_documents(project.documents, destination, fmt=args.fmt)
    print(path)
    return 0


def _print_project(project: ProjectState) -> None:
    print(f"Project {project.id} [{project.workflow_status.value}] {project.description}")
    for node in project.workflow.nodes:
        document = project.document_for(node.id)
        version = f"v{document.version}" if document is not None else "-"
        print(f"  {node.id:<6} {node.status.value:<24} {version:<4} {node.label}")


COMMANDS: dict[str, Callable[[argparse.Namespace, DocGraphConfig], int]] = {
    "new": _cmd_new,
    "status": _cmd_status,
    "resume": _cmd_resume,
    "approve": _cmd_approve,
    "reject": _cmd_reject,
    "skip": _cmd_skip,
    "chat": _cmd_chat,
    "reset": _cmd_reset,
    "export": _cmd_export,
}


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command or "")
    if handler is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = _build_config(args)
        return handler(args, config)
    except (FileNotFoundError, ValueError, RuntimeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
