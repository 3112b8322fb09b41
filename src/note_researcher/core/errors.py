"""Exception hierarchy for note-researcher.

The run controller converts these into ``RunOutcome`` values; they only
escape collaborators, never the controller's public operations.
"""

from typing import Optional


class NoteResearcherError(Exception):
    """Base class for all note-researcher errors."""


class ProviderError(NoteResearcherError):
    """A deep research provider call failed.

    Attributes:
        provider: Provider identifier (e.g. "gemini")
        original_error: Underlying exception, when one was wrapped
    """

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.original_error = original_error


class AuthenticationError(ProviderError):
    """The provider rejected the configured API key."""


class CredentialError(NoteResearcherError):
    """The credential file is missing or does not describe a usable provider."""


class NoteNotFoundError(NoteResearcherError):
    """A note or prompt file could not be found in the vault."""


class ReportWriteError(NoteResearcherError):
    """The final report could not be written to the vault."""
