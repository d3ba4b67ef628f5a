"""Value parsing helpers for CLI arguments."""

from __future__ import annotations

import json
from typing import Any


def parse_value(raw: str) -> Any:
    """Parse CLI input value as JSON if possible; fallback to string."""
    text = raw.strip()
    if text == "":
        return None
    try:
        return json.loads(text)
    except ValueError:
        lowered = text.lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
        return text
