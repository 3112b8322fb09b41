"""Durable run log.

One line per event, ``[ISO-8601 timestamp] [REASON_CODE] message``, appended
to a file that is created on first write. Backed by a dedicated stdlib
logger; write failures are handled by ``logging`` and never raise.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from note_researcher.core.models import ReasonCode

__all__ = ["RunLog", "RunLogFormatter", "LOG_FILENAME"]

LOG_FILENAME = "note-researcher.log"


class RunLogFormatter(logging.Formatter):
    """Formats records as ``[timestamp] [reason] message``."""

    def __init__(self) -> None:
        super().__init__("[%(asctime)s] [%(reason_code)s] %(message)s")

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        return datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
            timespec="milliseconds"
        )


class RunLog:
    """Append-only reason-coded event log for research runs."""

    def __init__(self, path: Path) -> None:
        self.path = path
        # Built directly, not via getLogger, so it never enters the logger registry
        self._logger = logging.Logger("note_researcher.runlog", logging.INFO)
        self._logger.propagate = False

        # delay=True: the file is only created on the first record
        self._handler = logging.FileHandler(path, mode="a", encoding="utf-8", delay=True)
        self._handler.setFormatter(RunLogFormatter())
        self._logger.addHandler(self._handler)

    def record(self, reason: ReasonCode, message: str) -> None:
        """Append one reason-coded line."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._logger.info(message, extra={"reason_code": reason.value})

    def close(self) -> None:
        self._logger.removeHandler(self._handler)
        self._handler.close()
