"""Credential file loading for deep research providers.

The credential file lives outside the vault and uses dotenv syntax::

    LLM_PROVIDER=gemini
    GEMINI_API_KEY=...
    # optional
    GEMINI_MODEL=deep-research-pro-preview-12-2025
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

from note_researcher.core.errors import CredentialError

logger = logging.getLogger(__name__)

PROVIDER_KEY = "LLM_PROVIDER"
EXPECTED_PROVIDER = "gemini"
API_KEY_KEY = "GEMINI_API_KEY"
MODEL_KEY = "GEMINI_MODEL"
DEFAULT_AGENT = "deep-research-pro-preview-12-2025"


@dataclass(frozen=True)
class ProviderCredentials:
    """Resolved provider credentials.

    Attributes:
        api_key: Provider API key
        agent: Deep research agent/model name
    """

    api_key: str
    agent: str = DEFAULT_AGENT

    def __repr__(self) -> str:
        return f"ProviderCredentials(api_key='***', agent={self.agent!r})"


def load_credentials(env_file: Path) -> ProviderCredentials:
    """Read and validate the credential file.

    Args:
        env_file: Path to the dotenv-style credential file

    Returns:
        ProviderCredentials with the API key and agent name

    Raises:
        CredentialError: If the file is missing, names another provider,
            or lacks an API key
    """
    if not env_file.is_file():
        raise CredentialError(f"Env file not found: {env_file}")

    try:
        values = dotenv_values(env_file)
    except (OSError, UnicodeDecodeError) as exc:
        raise CredentialError(f"Could not read env file {env_file}: {exc}") from exc

    provider = (values.get(PROVIDER_KEY) or "").strip()
    if provider != EXPECTED_PROVIDER:
        raise CredentialError(
            f"{PROVIDER_KEY} must be '{EXPECTED_PROVIDER}', got {provider or 'nothing'!r}"
        )

    api_key = (values.get(API_KEY_KEY) or "").strip()
    if not api_key:
        raise CredentialError(f"{API_KEY_KEY} is missing or empty in {env_file}")

    agent = (values.get(MODEL_KEY) or "").strip() or DEFAULT_AGENT
    logger.debug("Loaded %s credentials from %s (agent=%s)", provider, env_file, agent)
    return ProviderCredentials(api_key=api_key, agent=agent)
