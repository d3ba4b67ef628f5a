"""Read and write ``~/.clawx/config.json``.

The file uses camelCase keys (shared with the desktop UI); the pydantic models
use snake_case. Keys inside ``env`` mappings are environment variable names and
are never rewritten.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from clawx.config.schema import Config
from clawx.utils.helpers import get_data_path

_VERBATIM_KEYS = frozenset({"env"})
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def get_config_path() -> Path:
    return get_data_path() / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """Load the config file, or defaults (plus ``CLAWX_*`` env) when it is absent.

    Raises ValueError for unreadable JSON or a non-object root.
    """
    path = Path(config_path) if config_path else get_config_path()
    if not path.is_file():
        return Config()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("top level must be a JSON object")
    except ValueError as e:
        raise ValueError(f"Invalid config file {path}: {e}. Fix it or delete it to restore defaults.") from e
    logger.debug("Loaded config from {}", path)
    return Config.model_validate(convert_keys(_migrate_config(data)))


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Write the config atomically and drop any cached copy."""
    path = Path(config_path) if config_path else get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(convert_to_camel(config.model_dump()), indent=2, ensure_ascii=False)
    fd, tmp = tempfile.mkstemp(prefix=".config.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise

    from clawx.config.access import clear_config_cache

    clear_config_cache(config_path=path)


def _migrate_config(data: dict[str, Any]) -> dict[str, Any]:
    """Move a flat ``gateway.command`` / ``gateway.args`` into ``gateway.process``."""
    gateway = data.get("gateway")
    if not isinstance(gateway, dict):
        return data
    process = gateway.get("process") if isinstance(gateway.get("process"), dict) else {}
    if "command" in gateway:
        process.setdefault("command", gateway.pop("command"))
    if "args" in gateway:
        args = gateway.pop("args")
        if isinstance(args, list):
            process.setdefault("args", [str(a) for a in args])
    if process:
        gateway["process"] = process
    return data


def _rekey(data: Any, rename: Callable[[str], str]) -> Any:
    if isinstance(data, list):
        return [_rekey(item, rename) for item in data]
    if not isinstance(data, dict):
        return data
    out: dict[str, Any] = {}
    for key, value in data.items():
        new_key = rename(key)
        out[new_key] = dict(value) if new_key in _VERBATIM_KEYS and isinstance(value, dict) else _rekey(value, rename)
    return out


def convert_keys(data: Any) -> Any:
    """camelCase -> snake_case, recursively."""
    return _rekey(data, camel_to_snake)


def convert_to_camel(data: Any) -> Any:
    """snake_case -> camelCase, recursively."""
    return _rekey(data, snake_to_camel)


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
