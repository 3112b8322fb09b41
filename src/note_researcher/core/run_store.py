"""File-based persistence for the current run record.

Holds at most one ``RunRecord``. Writes are atomic (temp file, fsync,
replace) and guarded by a file lock so a second process, e.g. a CLI
``abandon`` while another process is polling, never observes a torn file.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from filelock import FileLock
from pydantic import ValidationError

from note_researcher.core.models import RunRecord

logger = logging.getLogger(__name__)

STATE_FILENAME = "current_run.json"
LOCK_TIMEOUT = 10


class RunStore:
    """Durable single-slot store for the in-flight run record."""

    def __init__(self, state_dir: Path) -> None:
        """Initialize the store.

        Args:
            state_dir: Directory holding the state file (created if missing)
        """
        self.state_dir = state_dir
        self.file_path = state_dir / STATE_FILENAME
        self._lock = FileLock(str(self.file_path.with_suffix(".lock")), timeout=LOCK_TIMEOUT)
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def get(self) -> Optional[RunRecord]:
        """Return the current run record, or None when no run is active."""
        with self._lock:
            return self._read()

    def _read(self) -> Optional[RunRecord]:
        """Read the state file. Caller must hold the lock."""
        if not self.file_path.exists():
            return None

        try:
            data = json.loads(self.file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read run state %s: %s", self.file_path, exc)
            return None

        raw = data.get("current_run") if isinstance(data, dict) else None
        if raw is None:
            return None
        try:
            return RunRecord.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid run record in %s: %s", self.file_path, exc)
            return None

    def set(self, record: Optional[RunRecord]) -> None:
        """Replace the current run record; returns once the write is durable.

        Args:
            record: New record, or None to clear the slot
        """
        with self._lock:
            self._write(record)

    def set_if_empty(self, record: RunRecord) -> Optional[RunRecord]:
        """Persist ``record`` only when no run is recorded.

        The check and the write happen under one lock, so another process
        recording a run in between is never overwritten.

        Returns:
            None if ``record`` was stored, otherwise the record already present
        """
        with self._lock:
            existing = self._read()
            if existing is not None:
                return existing
            self._write(record)
            return None

    def clear(self) -> None:
        """Shorthand for ``set(None)``."""
        self.set(None)

    def _write(self, record: Optional[RunRecord]) -> None:
        """Atomically replace the state file. Caller must hold the lock."""
        payload = {"current_run": record.model_dump(mode="json") if record else None}
        tmp_path = self.file_path.with_suffix(".tmp")

        with open(tmp_path, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, indent=2))
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, self.file_path)

        if record is None:
            logger.debug("Cleared run record in %s", self.file_path)
        else:
            logger.debug("Saved run %s to %s", record.interaction_id, self.file_path)
