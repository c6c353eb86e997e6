"""
Flat JSON state files. No database, no locking.

Readers never fail: a missing or unreadable file yields the default
structure and a warning. Writers create parent directories as needed.
"""

import copy
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(dt: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO timestamp. Naive values are taken as UTC. Garbage gives None."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def load_json(path: Path, default: Any) -> Any:
    """
    Read a JSON document. Returns a deep copy of `default` when the file is
    missing, unreadable, or not the same container type as `default`.
    """
    if not path.exists():
        return copy.deepcopy(default)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning(f"Could not load {path}, starting fresh: {e}")
        return copy.deepcopy(default)

    if default is not None and not isinstance(data, type(default)):
        log.warning(f"Unexpected structure in {path}, starting fresh")
        return copy.deepcopy(default)
    return data


def save_json(path: Path, data: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def ensure_dict(container: dict, key: str) -> dict:
    """Return container[key], replacing it with {} if absent or malformed."""
    value = container.get(key)
    if not isinstance(value, dict):
        value = {}
        container[key] = value
    return value
