"""User-facing notifications.

Notices are ephemeral, human-readable messages. The console notifier writes
them to stderr so stdout stays reserved for JSON command output.
"""

import logging
from datetime import datetime
from typing import List, Protocol

import click

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Anything that can show a short message to the user."""

    def notify(self, message: str) -> None: ...


class ConsoleNotifier:
    """Prints notices to stderr with a local timestamp."""

    def notify(self, message: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        click.echo(f"[{stamp}] {message}", err=True)
        logger.debug("Notice: %s", message)


class MemoryNotifier:
    """Collects notices in memory; used for tests and embedding."""

    def __init__(self) -> None:
        self.messages: List[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)

    @property
    def last(self) -> str:
        return self.messages[-1] if self.messages else ""
