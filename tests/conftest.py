from __future__ import annotations

from pathlib import Path

import pytest

from spec_approvals.models import ApprovalRecord, ApprovalStatus, Comment
from spec_approvals.repository import ApprovalRepository
from spec_approvals.state_store import WorkflowStore

_ENV_VARS = (
    "SPEC_APPROVALS_PROJECT_PATH",
    "SPEC_APPROVALS_DASHBOARD_URL",
    "SPEC_APPROVALS_WORKFLOW_DIR",
    "SPEC_APPROVALS_POLL_INTERVAL_SECONDS",
    "SPEC_APPROVALS_POLL_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's shell configuration out of every test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


def create_approval(project: Path, *, category_name: str = "foo", title: str = "Review spec") -> str:
    with WorkflowStore(project) as store:
        return ApprovalRepository(store).create(
            title,
            f"specs/{category_name}/design.md",
            "spec",
            category_name,
            "document",
        )


def respond(
    project: Path,
    approval_id: str,
    status: ApprovalStatus | str,
    *,
    response: str | None = None,
    annotations: str | None = None,
    comments: list[Comment] | None = None,
) -> ApprovalRecord:
    """Act as the dashboard process: a separate handle recording a decision."""
    with WorkflowStore(project) as store:
        return ApprovalRepository(store).respond(
            approval_id,
            status,
            response=response,
            annotations=annotations,
            comments=comments or [],
        )


def get_approval(project: Path, approval_id: str) -> ApprovalRecord | None:
    with WorkflowStore(project) as store:
        return ApprovalRepository(store).get(approval_id)
