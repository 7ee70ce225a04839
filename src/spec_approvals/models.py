from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs-revision"


class ApprovalCategory(str, Enum):
    SPEC = "spec"
    STEERING = "steering"


class ApprovalType(str, Enum):
    DOCUMENT = "document"
    ACTION = "action"


class CommentType(str, Enum):
    SELECTION = "selection"
    GENERAL = "general"


# Terminal states have no outgoing edges; nothing re-enters PENDING.
APPROVAL_STATUS_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset(
        {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.NEEDS_REVISION}
    ),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
    ApprovalStatus.NEEDS_REVISION: frozenset(),
}

WORKFLOW_DIR_NAME = ".spec-workflow"


class _CamelModel(BaseModel):
    """Base model persisted and returned with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Comment(_CamelModel):
    """One reviewer annotation, optionally anchored to a text selection.

    Decoding is lenient about ``selected_text`` so a record written by another
    dashboard never becomes unreadable over one comment; the shape of new
    comments is checked by ``ApprovalRepository.respond``.
    """

    type: CommentType
    comment: str
    selected_text: str | None = None


class ApprovalRecord(_CamelModel):
    """One unit of pending or resolved human review."""

    id: str = Field(min_length=1)
    title: str
    file_path: str
    category: ApprovalCategory
    category_name: str
    type: ApprovalType
    status: ApprovalStatus = ApprovalStatus.PENDING
    response: str | None = None
    annotations: str | None = None
    comments: list[Comment] = Field(default_factory=list)
    created_at: datetime
    responded_at: datetime | None = None

    @model_validator(mode="after")
    def _responded_at_matches_status(self) -> "ApprovalRecord":
        if self.status == ApprovalStatus.PENDING and self.responded_at is not None:
            raise ValueError("respondedAt must be unset while status is pending")
        if self.status != ApprovalStatus.PENDING and self.responded_at is None:
            raise ValueError(f"respondedAt is required once status is {self.status.value}")
        return self

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING


class ProjectContext(_CamelModel):
    project_path: str
    workflow_root: str
    dashboard_url: str | None = None


class ToolResponse(_CamelModel):
    """Structured result of one approvals action; never raised, always returned."""

    success: bool
    message: str
    data: dict[str, Any] | None = None
    next_steps: list[str] | None = None
    project_context: ProjectContext | None = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def utc_now() -> datetime:
    return datetime.now(UTC)
