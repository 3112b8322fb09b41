"""Note storage: reading notes from the vault and writing reports back.

The vault is a plain directory of Markdown notes. Paths handed to it are
vault-relative; anything resolving outside the root is rejected.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from note_researcher.core.errors import NoteNotFoundError, ReportWriteError

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"
REPORT_SUFFIX = "_deep_research.md"


@dataclass(frozen=True)
class Note:
    """A note in the vault.

    Attributes:
        path: Vault-relative POSIX path, e.g. "Projects/Idea.md"
        name: File stem used for display and report naming
    """

    path: str
    name: str


class NoteVault:
    """Read access to notes under a vault root."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    def _resolve(self, rel_path: str) -> Path:
        candidate = (self.root / rel_path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise NoteNotFoundError(f"Path escapes the vault: {rel_path}")
        return candidate

    def get_note(self, rel_path: str) -> Note:
        """Look up a note by vault-relative path.

        A missing ``.md`` suffix is appended.

        Raises:
            NoteNotFoundError: If no such note exists
        """
        rel = PurePosixPath(rel_path.replace("\\", "/"))
        if rel.suffix != NOTE_SUFFIX:
            rel = rel.with_name(rel.name + NOTE_SUFFIX)
        path = self._resolve(str(rel))
        if not path.is_file():
            raise NoteNotFoundError(f"Note not found: {rel}")
        return Note(path=str(rel), name=rel.stem)

    def read(self, target: Union[Note, str]) -> str:
        """Read a note or any vault-relative file as text.

        Raises:
            NoteNotFoundError: If the file does not exist
        """
        rel_path = target.path if isinstance(target, Note) else target
        path = self._resolve(rel_path)
        if not path.is_file():
            raise NoteNotFoundError(f"File not found: {rel_path}")
        return path.read_text(encoding="utf-8")


class ReportSink:
    """Writes final reports into the vault, one file per subject."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    def report_path(self, subject_name: str) -> Path:
        """Deterministic location of the report for ``subject_name``."""
        return self.root / subject_name / f"{subject_name}{REPORT_SUFFIX}"

    @staticmethod
    def render(subject_name: str, report_text: str, completed_at: datetime) -> str:
        header = (
            f"# {subject_name} deep research report\n"
            f"## {completed_at.isoformat()}\n\n"
        )
        return header + report_text

    def write_report(
        self,
        subject_name: str,
        report_text: str,
        completed_at: Optional[datetime] = None,
    ) -> Path:
        """Create or overwrite the report for a subject.

        Args:
            subject_name: Note name the run was launched for
            report_text: Report body returned by the provider
            completed_at: Completion timestamp for the header (default: now)

        Returns:
            Path of the written report

        Raises:
            ReportWriteError: If the folder or file cannot be written
        """
        path = self.report_path(subject_name)
        content = self.render(
            subject_name, report_text, completed_at or datetime.now(timezone.utc)
        )
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise ReportWriteError(f"Could not write {path}: {exc}") from exc

        logger.debug("Wrote report for %s to %s", subject_name, path)
        return path
