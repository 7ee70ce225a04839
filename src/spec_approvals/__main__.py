"""Entry point for `python -m spec_approvals` and the `spec-approvals` CLI script."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from spec_approvals.errors import ApprovalStoreError, PathResolutionError
from spec_approvals.handlers import ToolContext, approvals_handler
from spec_approvals.models import ApprovalCategory, ApprovalStatus, ApprovalType, Comment, CommentType
from spec_approvals.paths import validate_project_path
from spec_approvals.polling import wait_for_decision
from spec_approvals.repository import ApprovalRepository
from spec_approvals.settings import RuntimeSettings, load_env_file
from spec_approvals.state_store import WorkflowStore

DECISION_CHOICES = [status.value for status in ApprovalStatus if status is not ApprovalStatus.PENDING]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage spec workflow approval requests")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    request = subparsers.add_parser("request", help="Create a pending approval request")
    request.add_argument("--project-path", default=None, help="Project root (default: SPEC_APPROVALS_PROJECT_PATH)")
    request.add_argument("--title", default=None)
    request.add_argument("--file-path", default=None, help="File to review, relative to the project root")
    request.add_argument("--type", dest="approval_type", default=None, choices=[t.value for t in ApprovalType])
    request.add_argument("--category", default=None, choices=[c.value for c in ApprovalCategory])
    request.add_argument("--category-name", default=None, help="Spec name, or 'steering'")

    for name, help_text in (
        ("status", "Show an approval's status and next steps"),
        ("delete", "Delete an approved request (agent cleanup path)"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("approval_id")
        sub.add_argument("--project-path", default=None)

    list_parser = subparsers.add_parser("list", help="List approval records")
    list_parser.add_argument("--project-path", default=None)
    list_parser.add_argument("--pending", action="store_true", help="Only pending records")
    list_parser.add_argument("--category", default=None, choices=[c.value for c in ApprovalCategory])
    list_parser.add_argument("--category-name", default=None)

    respond = subparsers.add_parser("respond", help="Record a reviewer decision")
    respond.add_argument("approval_id")
    respond.add_argument("--project-path", default=None)
    respond.add_argument("--status", required=True, choices=DECISION_CHOICES)
    respond.add_argument("--response", default=None)
    respond.add_argument("--annotations", default=None)
    respond.add_argument("--comment", action="append", default=[], help="General comment (repeatable)")
    respond.add_argument(
        "--selection-comment",
        action="append",
        nargs=2,
        default=[],
        metavar=("SELECTED_TEXT", "COMMENT"),
        help="Comment anchored to selected text (repeatable)",
    )

    remove = subparsers.add_parser("remove", help="Delete a record regardless of status")
    remove.add_argument("approval_id")
    remove.add_argument("--project-path", default=None)

    wait = subparsers.add_parser("wait", help="Block until a reviewer decides")
    wait.add_argument("approval_id")
    wait.add_argument("--project-path", default=None)
    wait.add_argument("--timeout", type=float, default=None, help="Seconds (default: SPEC_APPROVALS_POLL_TIMEOUT_SECONDS)")
    wait.add_argument("--interval", type=float, default=None, help="Initial poll interval in seconds")
    return parser.parse_args(argv)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _resolve_project(args: argparse.Namespace, settings: RuntimeSettings) -> Path:
    raw = args.project_path or settings.project_path
    if not raw:
        raise PathResolutionError("Project path is required. Pass --project-path or set SPEC_APPROVALS_PROJECT_PATH.")
    return validate_project_path(raw)


def _run_action(args: argparse.Namespace, context: ToolContext) -> int:
    payload: dict[str, Any] = {"action": args.command, "projectPath": args.project_path}
    if args.command == "request":
        payload.update(
            {
                "projectPath": args.project_path or context.project_path,
                "title": args.title,
                "filePath": args.file_path,
                "type": args.approval_type,
                "category": args.category,
                "categoryName": args.category_name,
            }
        )
    else:
        payload["approvalId"] = args.approval_id
    response = approvals_handler(payload, context)
    print(response.to_json())
    return 0 if response.success else 1


def _run_store_command(args: argparse.Namespace, settings: RuntimeSettings) -> int:
    project_path = _resolve_project(args, settings)

    if args.command == "wait":
        record = wait_for_decision(
            project_path,
            args.approval_id,
            timeout_seconds=args.timeout if args.timeout is not None else settings.poll_timeout_seconds,
            interval_seconds=args.interval if args.interval is not None else settings.poll_interval_seconds,
            workflow_dir_name=settings.workflow_dir_name,
        )
        _print_json(record.model_dump(mode="json", by_alias=True, exclude_none=True))
        return 0 if record.status is ApprovalStatus.APPROVED else 1

    with WorkflowStore(project_path, workflow_dir_name=settings.workflow_dir_name) as store:
        repository = ApprovalRepository(store)
        if args.command == "list":
            if args.category is not None:
                records = repository.list_by_category(args.category, args.category_name)
            else:
                records = list(repository.list())
            if args.pending:
                records = [record for record in records if record.is_pending]
            _print_json([record.model_dump(mode="json", by_alias=True, exclude_none=True) for record in records])
            return 0

        if args.command == "respond":
            comments = [Comment(type=CommentType.GENERAL, comment=text) for text in args.comment]
            comments.extend(
                Comment(type=CommentType.SELECTION, comment=text, selected_text=selected)
                for selected, text in args.selection_comment
            )
            record = repository.respond(
                args.approval_id,
                args.status,
                response=args.response,
                annotations=args.annotations,
                comments=comments,
            )
            _print_json(record.model_dump(mode="json", by_alias=True, exclude_none=True))
            return 0

        if args.command == "remove":
            removed = repository.delete(args.approval_id)
            _print_json({"approvalId": args.approval_id, "removed": removed})
            return 0 if removed else 1

    raise ValueError(f"Unhandled command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_env_file()

    try:
        settings = RuntimeSettings.from_env()
    except ValueError as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1
    context = ToolContext.from_settings(settings)

    if args.command in ("request", "status", "delete"):
        return _run_action(args, context)

    try:
        return _run_store_command(args, settings)
    except (ApprovalStoreError, TimeoutError, ValueError) as exc:
        logging.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
