"""Abstract base class for deep research providers.

A provider runs a long research job remotely. The run controller only
depends on this interface; ``GeminiDeepResearchProvider`` is the production
implementation and tests supply an in-memory double.
"""

from abc import ABC, abstractmethod

from note_researcher.core.models import ResearchStatus


class DeepResearchProvider(ABC):
    """Remote deep research job API."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the provider identifier, e.g. "gemini"."""

    @abstractmethod
    async def start(self, context: str, prompt: str) -> str:
        """Start a research job.

        Args:
            context: Text of the note being researched
            prompt: Research instructions

        Returns:
            Opaque interaction ID for later status checks

        Raises:
            ProviderError: On transport or validation failure
        """

    @abstractmethod
    async def check_status(self, interaction_id: str) -> ResearchStatus:
        """Check a job once.

        Raises:
            ProviderError: If the status could not be observed
        """

    @abstractmethod
    async def get_report(self, interaction_id: str) -> str:
        """Fetch the final report of a completed job.

        Raises:
            ProviderError: If the job is not completed or the report is empty
        """
