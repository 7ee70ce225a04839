from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Iterable, Iterator

from .codec import decode_record, encode_record
from .errors import (
    ApprovalNotFoundError,
    ApprovalValidationError,
    CorruptRecordError,
    IllegalTransitionError,
    StorageWriteError,
)
from .models import (
    APPROVAL_STATUS_TRANSITIONS,
    ApprovalCategory,
    ApprovalRecord,
    ApprovalStatus,
    ApprovalType,
    Comment,
    CommentType,
    utc_now,
)
from .state_store import WorkflowStore

logger = logging.getLogger(__name__)

_MAX_ID_ATTEMPTS = 8


def new_approval_id() -> str:
    """Return a fresh ``approval_<epoch-millis>_<hex>`` identifier."""
    return f"approval_{int(time.time() * 1000)}_{os.urandom(4).hex()}"


def validate_transition(record: ApprovalRecord, new_status: ApprovalStatus) -> None:
    """Raise ``IllegalTransitionError`` unless *record* may move to *new_status*."""
    if new_status not in APPROVAL_STATUS_TRANSITIONS[record.status]:
        raise IllegalTransitionError(record.id, record.status, new_status)


def check_comment_shape(comment: Comment) -> None:
    """Raise ``ApprovalValidationError`` unless only selection comments carry ``selected_text``."""
    if comment.type is CommentType.SELECTION and not comment.selected_text:
        raise ApprovalValidationError("selection comments require selectedText")
    if comment.type is CommentType.GENERAL and comment.selected_text is not None:
        raise ApprovalValidationError("general comments must not carry selectedText")


class ApprovalRepository:
    """CRUD over approval records persisted in a started ``WorkflowStore``.

    Every operation works against the files on disk at call time.  Missing
    and corrupt records both read as "not found"; I/O failures propagate as
    ``StorageReadError``/``StorageWriteError``.

    Deletion here is unconditional.  The rule that only approved records may
    be deleted belongs to the agent-facing request handler, so that a human
    operating the dashboard can still remove any record.
    """

    def __init__(self, store: WorkflowStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(
        self,
        title: str,
        file_path: str,
        category: ApprovalCategory | str,
        category_name: str,
        type: ApprovalType | str,
    ) -> str:
        """Persist a new pending approval record.

        Args:
            title: Short human-readable label.
            file_path: Project-relative path of the artifact under review.
            category: ``spec`` or ``steering``.
            category_name: Spec name, or ``steering``.
            type: ``document`` or ``action``.

        Returns:
            The new approval id.

        Raises:
            ValueError: If category, type or category_name are invalid.
            StorageWriteError: If the record cannot be written.
        """
        category = ApprovalCategory(category)
        approval_type = ApprovalType(type)
        for _ in range(_MAX_ID_ATTEMPTS):
            record = ApprovalRecord(
                id=new_approval_id(),
                title=title,
                file_path=file_path,
                category=category,
                category_name=category_name,
                type=approval_type,
                status=ApprovalStatus.PENDING,
                created_at=utc_now(),
            )
            path = self.store.record_path(category_name, record.id)
            if self.store.create_record_file(path, encode_record(record)):
                logger.info(
                    "approval %s created for %s (%s/%s)",
                    record.id,
                    file_path,
                    category.value,
                    category_name,
                )
                return record.id
            logger.debug("approval id %s already taken; retrying", record.id)
        raise StorageWriteError(f"Could not allocate a unique approval id after {_MAX_ID_ATTEMPTS} attempts")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _load(self, path: Path) -> ApprovalRecord | None:
        text = self.store.read_record_text(path)
        if text is None:
            return None
        return decode_record(text, source=path)

    def get(self, approval_id: str) -> ApprovalRecord | None:
        """Return the record for *approval_id*, or ``None`` if absent or unreadable."""
        path = self.store.find_record_path(approval_id)
        if path is None:
            return None
        try:
            return self._load(path)
        except CorruptRecordError as exc:
            logger.warning("Treating corrupt approval %s as not found: %s", approval_id, exc)
            return None

    def list(self) -> Iterator[ApprovalRecord]:
        """Yield every readable record in the store.

        Each call rescans the directory.  Records deleted or corrupted while
        the scan is in progress are skipped.
        """
        for path in self.store.list_record_paths():
            try:
                record = self._load(path)
            except CorruptRecordError as exc:
                logger.warning("Skipping corrupt approval record %s: %s", path, exc)
                continue
            if record is not None:
                yield record

    def list_pending(self) -> list[ApprovalRecord]:
        return [record for record in self.list() if record.is_pending]

    def list_by_category(
        self,
        category: ApprovalCategory | str,
        category_name: str | None = None,
    ) -> list[ApprovalRecord]:
        category = ApprovalCategory(category)
        return [
            record
            for record in self.list()
            if record.category == category
            and (category_name is None or record.category_name == category_name)
        ]

    # ------------------------------------------------------------------
    # Reviewer response
    # ------------------------------------------------------------------

    def respond(
        self,
        approval_id: str,
        status: ApprovalStatus | str,
        *,
        response: str | None = None,
        annotations: str | None = None,
        comments: Iterable[Comment] = (),
    ) -> ApprovalRecord:
        """Record a reviewer decision on a pending approval.

        The read-modify-write happens under the record's exclusive lock and
        against the persisted form, so a concurrent writer in another process
        is never overwritten with a stale copy.

        Args:
            approval_id: The approval to update.
            status: ``approved``, ``rejected`` or ``needs-revision``.
            response: Optional reviewer message.
            annotations: Optional reviewer notes.
            comments: Comments appended after any already on the record.

        Returns:
            The updated record.

        Raises:
            ApprovalNotFoundError: If the record is absent or unreadable.
            ApprovalValidationError: If a new comment has the wrong shape.
            IllegalTransitionError: If the record is not pending or *status*
                is ``pending``.
            StorageWriteError: If the record cannot be written.
        """
        new_status = ApprovalStatus(status)
        new_comments = list(comments)
        for comment in new_comments:
            check_comment_shape(comment)
        path = self.store.find_record_path(approval_id)
        if path is None:
            raise ApprovalNotFoundError(approval_id)
        with self.store.locked(path):
            try:
                record = self._load(path)
            except CorruptRecordError as exc:
                raise ApprovalNotFoundError(approval_id) from exc
            if record is None:
                raise ApprovalNotFoundError(approval_id)
            validate_transition(record, new_status)
            updated = record.model_copy(
                update={
                    "status": new_status,
                    "response": response if response is not None else record.response,
                    "annotations": annotations if annotations is not None else record.annotations,
                    "comments": [*record.comments, *new_comments],
                    "responded_at": utc_now(),
                }
            )
            # model_copy skips validation; round-trip through the model to enforce invariants.
            updated = ApprovalRecord.model_validate(updated.model_dump())
            self.store.replace_record_file(path, encode_record(updated))
        logger.info("approval %s marked %s", approval_id, new_status.value)
        return updated

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, approval_id: str) -> bool:
        """Remove the record if present. Returns whether a removal occurred."""
        path = self.store.find_record_path(approval_id)
        if path is None:
            return False
        removed = self.store.remove_record_file(path)
        if removed:
            logger.info("approval %s deleted", approval_id)
        return removed
