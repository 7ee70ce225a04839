from __future__ import annotations

import logging
from typing import Any, Literal

from langchain_core.tools import tool

from .handlers import ToolContext, approvals_handler
from .models import ToolResponse
from .settings import RuntimeSettings

logger = logging.getLogger(__name__)


def _context_from_env() -> ToolContext:
    """Build the ambient tool context from environment settings."""
    return ToolContext.from_settings(RuntimeSettings.from_env())


@tool("approvals")
def approvals(
    action: Literal["request", "status", "delete"],
    project_path: str | None = None,
    approval_id: str | None = None,
    title: str | None = None,
    file_path: str | None = None,
    approval_type: Literal["document", "action"] | None = None,
    category: Literal["spec", "steering"] | None = None,
    category_name: str | None = None,
) -> str:
    """Manage approval requests reviewed by a human in the dashboard.

    Use ``request`` after creating each document, ``status`` to poll the
    decision, and ``delete`` to clean up once the request is approved.
    Only pass ``file_path``; the dashboard reads the file itself, so never
    include document content. Do not continue until the status check
    reports that you can proceed; verbal approval is not accepted.

    Args:
        action: ``request``, ``status`` or ``delete``.
        project_path: Absolute project root. Required for ``request``;
            ``status`` and ``delete`` fall back to the configured project.
        approval_id: Id returned by ``request``. Required for ``status`` and
            ``delete``.
        title: Brief description of what needs approval (``request``).
        file_path: File to review, relative to the project root (``request``).
        approval_type: ``document`` for content, ``action`` for a proposed
            action (``request``).
        category: ``spec`` or ``steering`` (``request``).
        category_name: Spec name, or ``steering`` (``request``).

    Returns:
        JSON string with ``success``, ``message`` and, where relevant,
        ``data``, ``nextSteps`` and ``projectContext``.
    """
    args: dict[str, Any] = {
        "action": action,
        "projectPath": project_path,
        "approvalId": approval_id,
        "title": title,
        "filePath": file_path,
        "type": approval_type,
        "category": category,
        "categoryName": category_name,
    }
    try:
        context = _context_from_env()
    except ValueError as exc:
        logger.error("approvals tool misconfigured: %s", exc)
        return ToolResponse(success=False, message=f"Invalid approvals configuration: {exc}").to_json()
    response = approvals_handler(args, context)
    logger.debug("approvals %s -> success=%s", action, response.success)
    return response.to_json()
