"""Core run lifecycle: models, persistence, scheduling and the run controller."""

from note_researcher.core.controller import RunController, create_controller
from note_researcher.core.errors import (
    AuthenticationError,
    CredentialError,
    NoteNotFoundError,
    NoteResearcherError,
    ProviderError,
    ReportWriteError,
)
from note_researcher.core.models import (
    ReasonCode,
    ResearchState,
    ResearchStatus,
    RunOutcome,
    RunRecord,
    RunState,
)
from note_researcher.core.run_log import RunLog
from note_researcher.core.run_store import RunStore
from note_researcher.core.scheduler import PollingScheduler, TickKind
from note_researcher.core.vault import Note, NoteVault, ReportSink

__all__ = [
    # Controller
    "RunController",
    "create_controller",
    # Models
    "ReasonCode",
    "ResearchState",
    "ResearchStatus",
    "RunOutcome",
    "RunRecord",
    "RunState",
    # Collaborators
    "RunLog",
    "RunStore",
    "PollingScheduler",
    "TickKind",
    "Note",
    "NoteVault",
    "ReportSink",
    # Errors
    "NoteResearcherError",
    "ProviderError",
    "AuthenticationError",
    "CredentialError",
    "NoteNotFoundError",
    "ReportWriteError",
]
