"""Exception hierarchy for the approval store and its request handlers."""

from __future__ import annotations

from typing import Iterable

from .models import ApprovalStatus


class ApprovalStoreError(Exception):
    """Base exception for all approval store errors."""


class ApprovalValidationError(ApprovalStoreError):
    """Raised when required action parameters are missing or invalid."""

    def __init__(self, message: str, *, missing_fields: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.missing_fields = tuple(missing_fields)


class PathResolutionError(ApprovalStoreError):
    """Raised when a project path cannot be validated or resolved."""


class ApprovalNotFoundError(ApprovalStoreError):
    """Raised when an approval id has no readable record."""

    def __init__(self, approval_id: str) -> None:
        super().__init__(f"Approval request not found: {approval_id}")
        self.approval_id = approval_id


class CorruptRecordError(ApprovalStoreError):
    """Raised when a persisted record cannot be parsed into an ApprovalRecord."""


class StorageReadError(ApprovalStoreError):
    """Raised when the workflow directory cannot be read."""


class StorageWriteError(ApprovalStoreError):
    """Raised when a record cannot be written or removed."""


class StoreNotStartedError(ApprovalStoreError):
    """Raised when a store handle is used outside its start/stop span."""


class IllegalTransitionError(ApprovalStoreError):
    """Raised when a status change is not permitted from the current status."""

    def __init__(self, approval_id: str, current: ApprovalStatus, requested: ApprovalStatus | str) -> None:
        requested_value = requested.value if isinstance(requested, ApprovalStatus) else requested
        super().__init__(
            f"Illegal approval status transition for {approval_id}: {current.value} -> {requested_value}"
        )
        self.approval_id = approval_id
        self.current = current
        self.requested = requested
