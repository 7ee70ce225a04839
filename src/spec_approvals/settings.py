from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .models import WORKFLOW_DIR_NAME


@dataclass(frozen=True)
class RuntimeSettings:
    """Runtime settings loaded from environment with fail-fast validation."""

    project_path: str = ""
    dashboard_url: str = ""
    workflow_dir_name: str = WORKFLOW_DIR_NAME
    poll_interval_seconds: float = 2.0
    poll_timeout_seconds: float = 600.0

    @classmethod
    def from_env(cls) -> "RuntimeSettings":
        return cls(
            project_path=os.getenv("SPEC_APPROVALS_PROJECT_PATH", ""),
            dashboard_url=os.getenv("SPEC_APPROVALS_DASHBOARD_URL", ""),
            workflow_dir_name=os.getenv("SPEC_APPROVALS_WORKFLOW_DIR", WORKFLOW_DIR_NAME),
            poll_interval_seconds=_get_env_float("SPEC_APPROVALS_POLL_INTERVAL_SECONDS", default=2.0, minimum=0.05),
            poll_timeout_seconds=_get_env_float("SPEC_APPROVALS_POLL_TIMEOUT_SECONDS", default=600.0, minimum=0.0),
        ).normalized()

    def normalized(self) -> "RuntimeSettings":
        """Validate and normalize all fields. Raises ValueError on invalid configuration."""
        workflow_dir_name = self.workflow_dir_name.strip()
        if not workflow_dir_name:
            raise ValueError("SPEC_APPROVALS_WORKFLOW_DIR must be non-empty")
        if Path(workflow_dir_name).name != workflow_dir_name or workflow_dir_name in {".", ".."}:
            raise ValueError(
                f"SPEC_APPROVALS_WORKFLOW_DIR must be a single path component, got: {workflow_dir_name!r}"
            )

        dashboard_url = self.dashboard_url.strip()
        if dashboard_url and not dashboard_url.startswith(("http://", "https://")):
            raise ValueError(f"SPEC_APPROVALS_DASHBOARD_URL must be an http(s) URL, got: {dashboard_url!r}")

        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"SPEC_APPROVALS_POLL_INTERVAL_SECONDS must be > 0, got: {self.poll_interval_seconds}"
            )
        if self.poll_timeout_seconds < 0:
            raise ValueError(
                f"SPEC_APPROVALS_POLL_TIMEOUT_SECONDS must be >= 0, got: {self.poll_timeout_seconds}"
            )

        return RuntimeSettings(
            project_path=self.project_path.strip(),
            dashboard_url=dashboard_url.rstrip("/"),
            workflow_dir_name=workflow_dir_name,
            poll_interval_seconds=self.poll_interval_seconds,
            poll_timeout_seconds=self.poll_timeout_seconds,
        )


def load_env_file(directory: Path | None = None) -> bool:
    """Load a ``.env`` file from *directory* (default: cwd) without overriding set variables.

    Returns:
        True if a file was found and loaded.
    """
    env_path = (directory if directory is not None else Path.cwd()) / ".env"
    if not env_path.is_file():
        return False
    return load_dotenv(env_path, override=False)


def _get_env_float(name: str, default: float, minimum: float, maximum: float = 86_400.0) -> float:
    """Parse a float from an environment variable with bounds checking.

    Args:
        name: Environment variable name.
        default: Value to return if the variable is unset.
        minimum: Inclusive lower bound.
        maximum: Inclusive upper bound (default one day).

    Returns:
        The parsed float, guaranteed to be within [minimum, maximum].

    Raises:
        ValueError: If the value is not a number or is outside bounds.
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got: {raw!r}") from exc
    if parsed < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got: {parsed}")
    if parsed > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got: {parsed}")
    return parsed
