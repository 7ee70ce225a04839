"""Request handlers for the ``approvals`` action surface.

Each handler validates its parameters before touching storage, opens a
``WorkflowStore`` for exactly one logical operation, and always returns a
``ToolResponse``; no exception escapes to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, TypeVar

from . import guidance
from .errors import ApprovalStoreError, ApprovalValidationError, IllegalTransitionError
from .models import (
    WORKFLOW_DIR_NAME,
    ApprovalCategory,
    ApprovalRecord,
    ApprovalStatus,
    ApprovalType,
    ProjectContext,
    ToolResponse,
)
from .paths import validate_project_path, workflow_root
from .repository import ApprovalRepository
from .settings import RuntimeSettings
from .state_store import WorkflowStore

logger = logging.getLogger(__name__)

REQUEST_REQUIRED_FIELDS = ("projectPath", "title", "filePath", "type", "category", "categoryName")

EnumT = TypeVar("EnumT", bound=Enum)


@dataclass(frozen=True)
class ToolContext:
    """Ambient values supplied by the hosting process, not by the caller."""

    project_path: str | None = None
    dashboard_url: str | None = None
    workflow_dir_name: str = WORKFLOW_DIR_NAME

    @classmethod
    def from_settings(cls, settings: RuntimeSettings) -> "ToolContext":
        return cls(
            project_path=settings.project_path or None,
            dashboard_url=settings.dashboard_url or None,
            workflow_dir_name=settings.workflow_dir_name,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def missing_fields(args: Mapping[str, Any], required: tuple[str, ...]) -> list[str]:
    return [name for name in required if _is_blank(args.get(name))]


def _parse_enum(enum_cls: type[EnumT], field_name: str, value: Any) -> EnumT:
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = " or ".join(f"'{member.value}'" for member in enum_cls)
        raise ApprovalValidationError(f"Invalid {field_name}: {value!r}. Use {allowed}.") from exc


def _resolve_project_path(args: Mapping[str, Any], context: ToolContext) -> str | None:
    """Explicit ``projectPath`` first, then the ambient context value."""
    explicit = args.get("projectPath")
    if not _is_blank(explicit):
        return str(explicit)
    if not _is_blank(context.project_path):
        return context.project_path
    return None


def _project_context(project_path: Path, context: ToolContext) -> ProjectContext:
    return ProjectContext(
        project_path=str(project_path),
        workflow_root=str(workflow_root(project_path, context.workflow_dir_name)),
        dashboard_url=context.dashboard_url,
    )


def _open_store(project_path: Path, context: ToolContext) -> WorkflowStore:
    return WorkflowStore(project_path, workflow_dir_name=context.workflow_dir_name)


def _failure(message: str, **extra: Any) -> ToolResponse:
    return ToolResponse(success=False, message=message, **extra)


def status_flags(status: ApprovalStatus) -> dict[str, bool]:
    can_proceed = status is ApprovalStatus.APPROVED
    return {
        "isCompleted": status in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED),
        "canProceed": can_proceed,
        "mustWait": not can_proceed,
        "blockNext": not can_proceed,
    }


def _record_payload(record: ApprovalRecord) -> dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)


def _present(**values: Any) -> dict[str, Any]:
    """Drop absent values so response data omits keys the record does not carry."""
    return {key: value for key, value in values.items() if value is not None}


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def approvals_handler(args: Mapping[str, Any], context: ToolContext) -> ToolResponse:
    """Dispatch one approvals action and return its structured response.

    Args:
        args: Action parameters keyed as on the wire (``action``,
            ``projectPath``, ``approvalId``, ``title``, ``filePath``,
            ``type``, ``category``, ``categoryName``).
        context: Ambient project path and dashboard URL.

    Returns:
        A ``ToolResponse``; failures have ``success=False``.
    """
    action = args.get("action")
    try:
        if action == "request":
            return handle_request_approval(args, context)
        if action == "status":
            return handle_get_approval_status(args, context)
        if action == "delete":
            return handle_delete_approval(args, context)
    except Exception as exc:  # noqa: BLE001
        logger.exception("approvals action %s failed unexpectedly", action)
        return _failure(f"Unexpected error during {action} action: {exc}")
    return _failure(f"Unknown action: {action}. Use 'request', 'status', or 'delete'.")


# ---------------------------------------------------------------------------
# request
# ---------------------------------------------------------------------------

def handle_request_approval(args: Mapping[str, Any], context: ToolContext) -> ToolResponse:
    missing = missing_fields(args, REQUEST_REQUIRED_FIELDS)
    if missing:
        return _failure(
            f"Missing required fields for request action: {', '.join(missing)}. "
            f"Required: {', '.join(REQUEST_REQUIRED_FIELDS)}",
            data={"missingFields": missing},
        )
    try:
        approval_type = _parse_enum(ApprovalType, "type", args["type"])
        category = _parse_enum(ApprovalCategory, "category", args["category"])
    except ApprovalValidationError as exc:
        return _failure(str(exc))

    title = str(args["title"])
    file_path = str(args["filePath"])
    category_name = str(args["categoryName"])
    try:
        project_path = validate_project_path(args["projectPath"])
        with _open_store(project_path, context) as store:
            approval_id = ApprovalRepository(store).create(
                title,
                file_path,
                category,
                category_name,
                approval_type,
            )
    except (ApprovalStoreError, OSError, ValueError) as exc:
        logger.warning("approval request for %s failed: %s", file_path, exc)
        return _failure(f"Failed to create approval request: {exc}")

    dashboard_hint = context.dashboard_url or "Dashboard URL not available"
    return ToolResponse(
        success=True,
        message=(
            f"Approval request created successfully. Please review in dashboard: {dashboard_hint} "
            "or VS Code extension 'Spec Workflow MCP'"
        ),
        data=_present(
            approvalId=approval_id,
            title=title,
            filePath=file_path,
            type=approval_type.value,
            status=ApprovalStatus.PENDING.value,
            dashboardUrl=context.dashboard_url,
        ),
        next_steps=guidance.request_next_steps(approval_id, context.dashboard_url),
        project_context=_project_context(project_path, context),
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------

def handle_get_approval_status(args: Mapping[str, Any], context: ToolContext) -> ToolResponse:
    approval_id = args.get("approvalId")
    if _is_blank(approval_id):
        return _failure("Missing required field for status action. Required: approvalId")
    approval_id = str(approval_id)

    raw_project_path = _resolve_project_path(args, context)
    if raw_project_path is None:
        return _failure("Project path is required. Please provide projectPath parameter.")

    try:
        project_path = validate_project_path(raw_project_path)
        with _open_store(project_path, context) as store:
            record = ApprovalRepository(store).get(approval_id)
    except (ApprovalStoreError, OSError) as exc:
        logger.warning("approval status check for %s failed: %s", approval_id, exc)
        return _failure(f"Failed to check approval status: {exc}")

    if record is None:
        return _failure(f"Approval request not found: {approval_id}")

    payload = _record_payload(record)
    return ToolResponse(
        success=True,
        message=guidance.status_message(record.status),
        data=_present(
            approvalId=approval_id,
            title=record.title,
            type=record.type.value,
            status=record.status.value,
            createdAt=payload["createdAt"],
            respondedAt=payload.get("respondedAt"),
            response=record.response,
            annotations=record.annotations,
            comments=payload["comments"],
            **status_flags(record.status),
            dashboardUrl=context.dashboard_url,
        ),
        next_steps=guidance.next_steps_for(record),
        project_context=_project_context(project_path, context),
    )


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------

def handle_delete_approval(args: Mapping[str, Any], context: ToolContext) -> ToolResponse:
    approval_id = args.get("approvalId")
    if _is_blank(approval_id):
        return _failure("Missing required field for delete action. Required: approvalId")
    approval_id = str(approval_id)

    raw_project_path = _resolve_project_path(args, context)
    if raw_project_path is None:
        return _failure("Project path is required. Please provide projectPath parameter.")

    try:
        project_path = validate_project_path(raw_project_path)
        with _open_store(project_path, context) as store:
            repository = ApprovalRepository(store)
            record = repository.get(approval_id)
            if record is None:
                return _failure(
                    f'Approval request "{approval_id}" not found',
                    next_steps=list(guidance.DELETE_NOT_FOUND_STEPS),
                )
            if record.status is not ApprovalStatus.APPROVED:
                raise IllegalTransitionError(approval_id, record.status, "deleted")
            deleted = repository.delete(approval_id)
    except IllegalTransitionError as exc:
        logger.info("delete blocked: %s", exc)
        return _failure(
            f'BLOCKED: Cannot proceed - status is "{exc.current.value}". '
            "VERBAL APPROVAL NOT ACCEPTED. Use dashboard or VS Code extension.",
            data={
                "approvalId": approval_id,
                "currentStatus": exc.current.value,
                "title": record.title,
                "blockProgress": True,
                "canProceed": False,
            },
            next_steps=list(guidance.DELETE_BLOCKED_STEPS),
        )
    except (ApprovalStoreError, OSError) as exc:
        logger.warning("approval delete for %s failed: %s", approval_id, exc)
        return _failure(
            f"Failed to delete approval: {exc}",
            next_steps=list(guidance.DELETE_ERROR_STEPS),
        )

    if not deleted:
        return _failure(
            f'Failed to delete approval request "{approval_id}"',
            next_steps=list(guidance.DELETE_FAILED_STEPS),
        )
    return ToolResponse(
        success=True,
        message=f'Approval request "{approval_id}" deleted successfully',
        data={
            "deletedApprovalId": approval_id,
            "title": record.title,
            "category": record.category.value,
            "categoryName": record.category_name,
        },
        next_steps=list(guidance.DELETE_DONE_STEPS),
        project_context=_project_context(project_path, context),
    )
