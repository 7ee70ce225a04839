from __future__ import annotations

import fcntl
import logging
import os
import re
import tempfile
from contextlib import ExitStack, contextmanager
from pathlib import Path
from types import TracebackType
from typing import Iterator

from .errors import CorruptRecordError, StorageReadError, StorageWriteError, StoreNotStartedError
from .models import WORKFLOW_DIR_NAME

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# File locking helpers
# ---------------------------------------------------------------------------

_LOCK_SUFFIX = ".lock"
_RECORD_SUFFIX = ".json"
_ID_LOCK_NAME = ".ids"
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


def _lock_path_for(path: Path) -> Path:
    return path.with_suffix(path.suffix + _LOCK_SUFFIX)


def _discard_lock_file(path: Path) -> None:
    lock_path = _lock_path_for(path)
    try:
        lock_path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove lock file %s: %s", lock_path, exc)


@contextmanager
def _locked_file(path: Path) -> Iterator[None]:
    """Acquire an exclusive file lock for the duration of the context.

    Uses a separate .lock sidecar file so the actual data file can be
    atomically replaced via ``os.replace`` without disturbing the lock
    handle.  The lock is advisory and only coordinates processes that go
    through this module.
    """
    lock_path = _lock_path_for(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a+", encoding="utf-8") as lock_handle:
        fcntl.flock(lock_handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_handle.fileno(), fcntl.LOCK_UN)


def _atomic_write_text(path: Path, content: str) -> None:
    """Write *content* to *path* atomically.

    Writes to a temporary file in the same directory, then renames
    (``os.replace``) into place.  Readers in other processes see either
    the old record or the new one, never a partial write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_handle:
            tmp_handle.write(content)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _enter_lock(stack: ExitStack, path: Path) -> None:
    try:
        stack.enter_context(_locked_file(path))
    except OSError as exc:
        raise StorageWriteError(f"Failed to lock {path}: {exc}") from exc


def _read_text_if_present(path: Path) -> str | None:
    """Return the file text, or ``None`` if the file does not exist.

    Raises:
        CorruptRecordError: If the file is not valid UTF-8.
        StorageReadError: If the file exists but cannot be read.
    """
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except UnicodeDecodeError as exc:
        raise CorruptRecordError(f"{path} contains invalid UTF-8 data") from exc
    except OSError as exc:
        raise StorageReadError(f"Failed to read {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

def sanitize_category_name(category_name: str) -> str:
    """Sanitize a category name for use as a filesystem path component.

    Args:
        category_name: Raw category name (spec name or ``steering``).

    Returns:
        A filesystem-safe version of the name, truncated to 128 chars.

    Raises:
        ValueError: If the name is empty or contains no safe characters.
    """
    value = category_name.strip()
    if not value:
        raise ValueError("categoryName must be non-empty")
    value = re.sub(r"[^A-Za-z0-9._-]+", "-", value).strip("-.")
    if not value:
        raise ValueError("categoryName contains no filesystem-safe characters")
    return value[:128]


def is_safe_approval_id(approval_id: str) -> bool:
    """Return True if *approval_id* can be used as a record filename stem."""
    return bool(_SAFE_ID_RE.match(approval_id)) and ".." not in approval_id


# ---------------------------------------------------------------------------
# WorkflowStore
# ---------------------------------------------------------------------------

class WorkflowStore:
    """Scoped handle over one project's ``.spec-workflow`` directory.

    The handle holds no open files and caches no records between calls:
    every read goes to disk, because a dashboard process may have changed
    the directory since the last call.  ``start``/``stop`` bound one
    logical operation and are both idempotent.

    Layout::

        <project>/.spec-workflow/approvals/<categoryName>/<id>.json
        <project>/.spec-workflow/approvals/<categoryName>/<id>.json.lock
    """

    def __init__(self, project_path: Path | str, *, workflow_dir_name: str = WORKFLOW_DIR_NAME) -> None:
        self.project_path = Path(project_path)
        self.root = self.project_path / workflow_dir_name
        self.approvals_dir = self.root / "approvals"
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> WorkflowStore:
        """Create the workflow directory structure if absent and open the handle.

        Raises:
            StorageWriteError: If the directories cannot be created.
        """
        if self._started:
            return self
        try:
            self.approvals_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageWriteError(f"Failed to initialize workflow directory {self.root}: {exc}") from exc
        self._started = True
        logger.debug("workflow store started at %s", self.root)
        return self

    def stop(self) -> None:
        """Release the handle. Safe to call repeatedly or without ``start``."""
        if self._started:
            logger.debug("workflow store stopped at %s", self.root)
        self._started = False

    def __enter__(self) -> WorkflowStore:
        return self.start()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def _require_started(self) -> None:
        if not self._started:
            raise StoreNotStartedError(f"workflow store for {self.project_path} is not started")

    # ------------------------------------------------------------------
    # Record paths
    # ------------------------------------------------------------------

    def record_path(self, category_name: str, approval_id: str) -> Path:
        """Return the path a record with this category and id is stored at."""
        if not is_safe_approval_id(approval_id):
            raise ValueError(f"unsafe approval id: {approval_id!r}")
        return self.approvals_dir / sanitize_category_name(category_name) / f"{approval_id}{_RECORD_SUFFIX}"

    def find_record_path(self, approval_id: str) -> Path | None:
        """Locate a record by id across all category directories.

        Returns:
            The record path, or ``None`` if no such record exists.

        Raises:
            StorageReadError: If the approvals directory cannot be listed.
        """
        self._require_started()
        if not is_safe_approval_id(approval_id):
            return None
        try:
            matches = sorted(self.approvals_dir.glob(f"*/{approval_id}{_RECORD_SUFFIX}"))
        except OSError as exc:
            raise StorageReadError(f"Failed to scan {self.approvals_dir}: {exc}") from exc
        for path in matches:
            if path.is_file():
                return path
        return None

    def list_record_paths(self) -> list[Path]:
        """Return every record path currently on disk, in stable order.

        Raises:
            StorageReadError: If the approvals directory cannot be listed.
        """
        self._require_started()
        try:
            return sorted(
                path for path in self.approvals_dir.glob(f"*/*{_RECORD_SUFFIX}")
                if not path.name.startswith(".")
            )
        except OSError as exc:
            raise StorageReadError(f"Failed to scan {self.approvals_dir}: {exc}") from exc

    # ------------------------------------------------------------------
    # Record files
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self, path: Path) -> Iterator[None]:
        """Hold the record's exclusive cross-process lock for a read-modify-write.

        A sidecar never outlives its record: if the record file is absent when
        the lock is released, the sidecar is removed while still held.
        """
        self._require_started()
        with ExitStack() as stack:
            _enter_lock(stack, path)
            try:
                yield
            finally:
                if not path.exists():
                    _discard_lock_file(path)

    def read_record_text(self, path: Path) -> str | None:
        """Return the record file text, or ``None`` if it no longer exists."""
        self._require_started()
        return _read_text_if_present(path)

    def create_record_file(self, path: Path, content: str) -> bool:
        """Write a new record file, refusing to overwrite an existing one.

        Returns:
            True if the file was created, False if a record already exists
            at *path*.

        Raises:
            StorageWriteError: If the file cannot be written.
        """
        self._require_started()
        approval_id = path.name.removesuffix(_RECORD_SUFFIX)
        # Ids are unique across categories, so the check spans the whole store.
        with ExitStack() as stack:
            _enter_lock(stack, self.approvals_dir / _ID_LOCK_NAME)
            if self.find_record_path(approval_id) is not None:
                return False
            with self.locked(path):
                if path.exists():
                    return False
                try:
                    _atomic_write_text(path, content)
                except OSError as exc:
                    raise StorageWriteError(f"Failed to write {path}: {exc}") from exc
        return True

    def replace_record_file(self, path: Path, content: str) -> None:
        """Atomically replace a record file. Callers hold ``locked(path)``.

        Raises:
            StorageWriteError: If the file cannot be written.
        """
        self._require_started()
        try:
            _atomic_write_text(path, content)
        except OSError as exc:
            raise StorageWriteError(f"Failed to write {path}: {exc}") from exc

    def remove_record_file(self, path: Path) -> bool:
        """Remove a record file and its lock sidecar.

        Returns:
            True if the record file was removed, False if it was already gone.

        Raises:
            StorageWriteError: If the file exists but cannot be removed.
        """
        self._require_started()
        with self.locked(path):
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise StorageWriteError(f"Failed to delete {path}: {exc}") from exc
        return True
