"""Simple JSON file store used as the offline fallback for the player catalog."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Persist JSON payloads locally together with the time they were captured."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def load(self, key: str) -> Optional[Tuple[Any, float]]:
        """Return ``(data, timestamp)`` for a stored snapshot, or None if unusable."""
        path = self._path_for(key)
        if not path.exists():
            return None

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return payload["data"], float(payload["timestamp"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring unreadable snapshot: {path}")
            return None

    def save(self, key: str, data: Any, timestamp: float) -> None:
        """Persist payload to disk."""
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps({"timestamp": timestamp, "data": data}), encoding="utf-8"
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _path_for(self, key: str) -> Path:
        safe_key = self._sanitize(key)
        return self.directory / f"{safe_key}.json"

    @staticmethod
    def _sanitize(value: str) -> str:
        return "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in value)
