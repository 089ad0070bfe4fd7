"""Date-keyed local shadow of the server's task lists."""

import logging
from datetime import date
from typing import Any, Optional

from .storage import JsonFileStore

logger = logging.getLogger(__name__)


class TaskCache:
    """
    Provisional task lists keyed by scheduled date.

    Refreshes replace a date's entry wholesale; optimistic updates patch a
    single task in place. Nothing here is authoritative.
    """

    def __init__(self, storage: JsonFileStore):
        self.storage = storage
        self._tasks: dict[str, list[dict]] = storage.load(default={})

    def get(self, day: date) -> Optional[list[dict]]:
        return self._tasks.get(day.isoformat())

    def replace(self, day: date, tasks: list[dict]) -> bool:
        """Store a fresh list for ``day``. Returns True if it differs from the cached one."""
        key = day.isoformat()
        changed = self._tasks.get(key) != tasks
        if changed:
            self._tasks[key] = tasks
            self.storage.save(self._tasks)
            logger.debug(f"Cache for {key} updated ({len(tasks)} tasks)")
        return changed

    def update_task(self, day: date, task_id: str, **fields: Any) -> Optional[dict]:
        """
        Patch one cached task.

        Returns:
            The previous values of the patched fields, or None if the task is not cached
        """
        for task in self._tasks.get(day.isoformat(), []):
            if str(task.get("id")) == str(task_id):
                previous = {name: task.get(name) for name in fields}
                task.update(fields)
                self.storage.save(self._tasks)
                return previous
        return None
