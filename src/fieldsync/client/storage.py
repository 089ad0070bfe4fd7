"""Durable JSON storage for client-side state."""

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonFileStore:
    """
    A single JSON document on disk, replaced atomically on every save.

    Example:
        store = JsonFileStore("queue.json")
        actions = store.load(default=[])
        store.save(actions)
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self, default: Any) -> Any:
        """Read the document; ``default`` when missing or unreadable."""
        if not self.path.exists():
            return default
        try:
            return json.loads(self.path.read_text("utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable {self.path}: {e}")
            return default

    def save(self, data: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, default=str), "utf-8")
        os.replace(tmp_path, self.path)
