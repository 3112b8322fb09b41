"""Deep research providers.

Supported providers:
- GeminiDeepResearchProvider: Gemini Interactions API (background agents)
"""

from pathlib import Path

from note_researcher.core.errors import CredentialError
from note_researcher.core.providers.base import DeepResearchProvider
from note_researcher.core.providers.credentials import (
    DEFAULT_AGENT,
    ProviderCredentials,
    load_credentials,
)
from note_researcher.core.providers.gemini import GeminiDeepResearchProvider


def create_provider(env_file_path: str) -> DeepResearchProvider:
    """Build the configured provider from a credential file.

    Raises:
        CredentialError: If the credential file is unusable
    """
    if not env_file_path:
        raise CredentialError("Env file path is not configured")
    credentials = load_credentials(Path(env_file_path).expanduser())
    return GeminiDeepResearchProvider(api_key=credentials.api_key, agent=credentials.agent)


__all__ = [
    "DeepResearchProvider",
    "GeminiDeepResearchProvider",
    "ProviderCredentials",
    "DEFAULT_AGENT",
    "load_credentials",
    "create_provider",
]
