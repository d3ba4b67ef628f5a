"""Cached access to the clawx config file.

Entries are keyed by resolved path and remember the file's mtime, so a
settings file rewritten by the UI is picked up on the next ``get_config()``.
"""

from __future__ import annotations

import threading
from pathlib import Path

from clawx.config.loader import get_config_path, load_config
from clawx.config.schema import Config

_lock = threading.RLock()
_cache: dict[Path, tuple[float | None, Config]] = {}


def _resolve(config_path: Path | None) -> Path:
    return Path(config_path or get_config_path()).expanduser().resolve()


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def get_config(*, config_path: Path | None = None, force_reload: bool = False) -> Config:
    """Return the cached config, reloading when forced or the file changed."""
    path = _resolve(config_path)
    mtime = _mtime(path)
    with _lock:
        entry = _cache.get(path)
        if force_reload or entry is None or entry[0] != mtime:
            entry = (mtime, load_config(path))
            _cache[path] = entry
        return entry[1]


def clear_config_cache(*, config_path: Path | None = None) -> None:
    """Drop one cached entry, or all of them."""
    with _lock:
        if config_path is None:
            _cache.clear()
        else:
            _cache.pop(_resolve(config_path), None)
