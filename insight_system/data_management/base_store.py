"""Shared plumbing for the in-memory, JSON-persisted stores.

Data structure:
{
    "project_id": {
        "created_at": "...",
        "updated_at": "...",
        "<collection>": {"record_id": {...}, ...},
        ...
    }
}

Records are kept as JSON-ready dicts so that what sits in memory is exactly
what lands on disk. Every mutation persists synchronously when a
persistence path is configured.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger


class StorageError(RuntimeError):
    """A store could not read or write its data."""


class JsonPersistedStore:
    """Project-scoped record storage with optional JSON file persistence."""

    component = "Store"

    def __init__(self, persistence_path: Optional[str] = None):
        """
        Args:
            persistence_path: Optional path to JSON file for persistence.
                If None, storage is memory-only.
        """
        self._storage: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self.persistence_path = Path(persistence_path) if persistence_path else None
        self.logger = logger.bind(component=self.component)

        if self.persistence_path and self.persistence_path.exists():
            self._load_from_file()

        self.logger.debug(
            f"{self.component} initialized",
            persistence_enabled=self.persistence_path is not None,
        )

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _project(self, project_id: str) -> Dict[str, Any]:
        if project_id not in self._storage:
            now = self._now()
            self._storage[project_id] = {"created_at": now, "updated_at": now}
        return self._storage[project_id]

    def _collection(self, project_id: str, name: str) -> Dict[str, Dict[str, Any]]:
        project = self._project(project_id)
        return project.setdefault(name, {})

    def _touch(self, project_id: str) -> None:
        self._project(project_id)["updated_at"] = self._now()
        self._save_to_file()

    def _save_to_file(self) -> None:
        """Write the whole store, replacing the previous file atomically."""
        path = self.persistence_path
        if not path:
            return

        staging = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            staging.write_text(json.dumps(self._storage, indent=2, default=str), encoding="utf-8")
            staging.replace(path)
        except OSError as e:
            self.logger.error(f"Could not persist {self.component} to {path}: {e}")
            raise StorageError(f"cannot write {path}: {e}") from e

    def _load_from_file(self) -> None:
        path = self.persistence_path
        if not path or not path.exists():
            return

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error(f"Could not load {self.component} from {path}: {e}")
            raise StorageError(f"cannot read {path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"unexpected layout in {self.persistence_path}")

        self._storage = data
        self.logger.info(f"Loaded from {self.persistence_path}", projects=len(self._storage))

    async def delete_project(self, project_id: str) -> bool:
        async with self._lock:
            if project_id not in self._storage:
                return False
            del self._storage[project_id]
            self._save_to_file()
            return True

    async def list_projects(self) -> list[str]:
        async with self._lock:
            return list(self._storage.keys())
