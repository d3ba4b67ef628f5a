"""Path helpers for clawx data and logs."""

from __future__ import annotations

from pathlib import Path


def ensure_dir(path: Path) -> Path:
    """Create the directory (and parents) when missing; return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """Get the clawx data directory (~/.clawx)."""
    return ensure_dir(Path.home() / ".clawx")


def get_logs_path() -> Path:
    """Get the clawx logs directory (~/.clawx/logs)."""
    return ensure_dir(get_data_path() / "logs")


def expand_path(raw: str) -> Path:
    """Expand ~ and return an absolute path."""
    return Path(raw).expanduser().resolve()
