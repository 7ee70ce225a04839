from importlib.metadata import PackageNotFoundError, version

from .codec import decode_record, encode_record
from .errors import (
    ApprovalNotFoundError,
    ApprovalStoreError,
    ApprovalValidationError,
    CorruptRecordError,
    IllegalTransitionError,
    PathResolutionError,
    StorageReadError,
    StorageWriteError,
    StoreNotStartedError,
)
from .guidance import status_next_steps
from .handlers import ToolContext, approvals_handler
from .models import (
    APPROVAL_STATUS_TRANSITIONS,
    ApprovalCategory,
    ApprovalRecord,
    ApprovalStatus,
    ApprovalType,
    Comment,
    CommentType,
    ProjectContext,
    ToolResponse,
)
from .polling import wait_for_decision
from .repository import ApprovalRepository
from .settings import RuntimeSettings
from .state_store import WorkflowStore


def get_version() -> str:
    try:
        return version("spec-approvals")
    except PackageNotFoundError:
        return "0.0.0"


__all__ = [
    "APPROVAL_STATUS_TRANSITIONS",
    "ApprovalCategory",
    "ApprovalNotFoundError",
    "ApprovalRecord",
    "ApprovalRepository",
    "ApprovalStatus",
    "ApprovalStoreError",
    "ApprovalType",
    "ApprovalValidationError",
    "Comment",
    "CommentType",
    "CorruptRecordError",
    "IllegalTransitionError",
    "PathResolutionError",
    "ProjectContext",
    "RuntimeSettings",
    "StorageReadError",
    "StorageWriteError",
    "StoreNotStartedError",
    "ToolContext",
    "ToolResponse",
    "WorkflowStore",
    "approvals_handler",
    "decode_record",
    "encode_record",
    "status_next_steps",
    "wait_for_decision",
]
