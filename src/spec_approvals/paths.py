from __future__ import annotations

from pathlib import Path

from .errors import PathResolutionError
from .models import WORKFLOW_DIR_NAME


def validate_project_path(project_path: str | Path) -> Path:
    """Resolve *project_path* to an existing absolute directory.

    Args:
        project_path: Path supplied by the caller; ``~`` is expanded.

    Returns:
        The resolved absolute path.

    Raises:
        PathResolutionError: If the path is empty, missing, or not a directory.
    """
    raw = str(project_path).strip()
    if not raw:
        raise PathResolutionError("Project path must be non-empty")
    try:
        resolved = Path(raw).expanduser().resolve()
    except (OSError, RuntimeError) as exc:
        raise PathResolutionError(f"Cannot resolve project path {raw}: {exc}") from exc
    if not resolved.exists():
        raise PathResolutionError(f"Project path does not exist: {resolved}")
    if not resolved.is_dir():
        raise PathResolutionError(f"Project path is not a directory: {resolved}")
    return resolved


def workflow_root(project_path: Path, workflow_dir_name: str = WORKFLOW_DIR_NAME) -> Path:
    return project_path / workflow_dir_name
