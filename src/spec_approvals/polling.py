from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from .errors import ApprovalNotFoundError
from .models import WORKFLOW_DIR_NAME, ApprovalRecord
from .repository import ApprovalRepository
from .state_store import WorkflowStore

logger = logging.getLogger(__name__)


def wait_for_decision(
    project_path: Path,
    approval_id: str,
    *,
    timeout_seconds: float,
    interval_seconds: float = 2.0,
    max_interval_seconds: float = 30.0,
    workflow_dir_name: str = WORKFLOW_DIR_NAME,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> ApprovalRecord:
    """Poll an approval until it leaves ``pending``.

    Each poll opens and closes its own store handle, so no file handle is
    held while the human reviewer takes their time.  The delay between polls
    doubles up to ``max_interval_seconds``.

    Args:
        project_path: Resolved project root.
        approval_id: Approval to watch.
        timeout_seconds: Give up after this long.
        interval_seconds: Initial delay between polls.
        max_interval_seconds: Upper bound for the back-off delay.
        workflow_dir_name: Name of the workflow directory under the project.
        sleep: Injected sleep function.
        clock: Injected monotonic clock.

    Returns:
        The record once its status is no longer ``pending``.

    Raises:
        ApprovalNotFoundError: If the record does not exist or is deleted
            while waiting.
        TimeoutError: If the record is still pending at the deadline.
    """
    deadline = clock() + timeout_seconds
    delay = interval_seconds
    while True:
        with WorkflowStore(project_path, workflow_dir_name=workflow_dir_name) as store:
            record = ApprovalRepository(store).get(approval_id)
        if record is None:
            raise ApprovalNotFoundError(approval_id)
        if not record.is_pending:
            logger.info("approval %s resolved as %s", approval_id, record.status.value)
            return record
        remaining = deadline - clock()
        if remaining <= 0:
            raise TimeoutError(f"approval {approval_id} still pending after {timeout_seconds:g}s")
        logger.debug("approval %s pending; next poll in %.2fs", approval_id, min(delay, remaining))
        sleep(min(delay, remaining))
        delay = min(delay * 2, max_interval_seconds)
