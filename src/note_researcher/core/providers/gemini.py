"""Gemini deep research provider.

Wraps the Gemini Interactions API: a research job is created as a
background interaction and polled by ID until it completes or fails.

Example usage:
    provider = GeminiDeepResearchProvider(api_key="...")
    interaction_id = await provider.start(note_text, prompt_text)
    status = await provider.check_status(interaction_id)
"""

import json
import logging
from typing import Any, Optional

import httpx

from note_researcher.core.errors import AuthenticationError, ProviderError
from note_researcher.core.models import ResearchStatus
from note_researcher.core.providers.base import DeepResearchProvider
from note_researcher.core.providers.credentials import DEFAULT_AGENT

logger = logging.getLogger(__name__)

# Gemini API constants
GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
INTERACTIONS_ENDPOINT = "/interactions"
DEFAULT_TIMEOUT = 60.0

# Remote statuses that end a job; anything else is still in progress
COMPLETED_STATUSES = frozenset(["completed"])
FAILED_STATUSES = frozenset(["failed", "cancelled"])


def merge_input(context: str, prompt: str) -> str:
    """Combine research instructions and note text into one input string."""
    return f"{prompt.strip()}\n\n---\n\n{context.strip()}\n"


def _stringify_error(error: Any) -> str:
    if error is None:
        return "Unknown error"
    if isinstance(error, str):
        return error or "Unknown error"
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        # Keep code/status alongside the message
        extra = {key: value for key, value in error.items() if key != "message"}
        if not extra:
            return error["message"]
        return f"{error['message']} ({json.dumps(extra, default=str)})"
    return json.dumps(error, default=str)


def _extract_report(data: dict[str, Any]) -> Optional[str]:
    outputs = data.get("outputs") or []
    if not outputs:
        return None
    last = outputs[-1]
    text = last.get("text") if isinstance(last, dict) else None
    return text or None


class GeminiDeepResearchProvider(DeepResearchProvider):
    """Gemini Interactions API client for deep research jobs.

    No retries: a failed start is reported to the user, and a failed status
    check is simply tried again on the next poll.

    Attributes:
        agent: Deep research agent name sent with each job
    """

    def __init__(
        self,
        api_key: str,
        agent: str = DEFAULT_AGENT,
        base_url: str = GEMINI_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the provider.

        Args:
            api_key: Gemini API key
            agent: Deep research agent name
            base_url: API base URL
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If no API key is provided
        """
        if not api_key:
            raise ValueError("Gemini API key required.")

        self._api_key = api_key
        self.agent = agent
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def get_provider_name(self) -> str:
        return "gemini"

    def _headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key, "Content-Type": "application/json"}

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON body.

        Raises:
            AuthenticationError: On 401/403
            ProviderError: On any other HTTP or transport error
        """
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                if method == "POST":
                    response = await client.post(url, json=payload, headers=self._headers())
                else:
                    response = await client.get(url, headers=self._headers())
        except httpx.RequestError as e:
            raise ProviderError(
                f"Request to {path} failed: {e}",
                provider="gemini",
                original_error=e,
            ) from e

        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid API key", provider="gemini")
        if response.status_code >= 400:
            raise ProviderError(
                f"API error {response.status_code}: {self._extract_error_message(response)}",
                provider="gemini",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                "Response was not valid JSON", provider="gemini", original_error=e
            ) from e
        if not isinstance(data, dict):
            raise ProviderError("Unexpected response shape", provider="gemini")
        return data

    def _extract_error_message(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200] if response.text else "Unknown error"
        if isinstance(data, dict) and "error" in data:
            return _stringify_error(data["error"])
        return response.text[:200]

    async def start(self, context: str, prompt: str) -> str:
        payload = {
            "input": merge_input(context, prompt),
            "agent": self.agent,
            "background": True,
            "store": True,
        }
        logger.debug("Starting Gemini deep research (agent=%s)", self.agent)
        data = await self._request("POST", INTERACTIONS_ENDPOINT, payload)

        interaction_id = data.get("id")
        if not interaction_id:
            raise ProviderError("Response did not include an interaction id", provider="gemini")
        return str(interaction_id)

    async def _get_interaction(self, interaction_id: str) -> dict[str, Any]:
        return await self._request("GET", f"{INTERACTIONS_ENDPOINT}/{interaction_id}")

    async def check_status(self, interaction_id: str) -> ResearchStatus:
        data = await self._get_interaction(interaction_id)
        status = str(data.get("status", "")).lower()
        logger.debug("Interaction %s status: %s", interaction_id, status or "<none>")

        if status in COMPLETED_STATUSES:
            return ResearchStatus.completed(report=_extract_report(data))
        if status in FAILED_STATUSES:
            error = data.get("error")
            if error is None and status == "cancelled":
                error = "Interaction was cancelled"
            return ResearchStatus.failed(_stringify_error(error))
        return ResearchStatus.running()

    async def get_report(self, interaction_id: str) -> str:
        data = await self._get_interaction(interaction_id)
        status = str(data.get("status", "")).lower()
        if status not in COMPLETED_STATUSES:
            raise ProviderError(
                f"Interaction {interaction_id} is not completed (status: {status or 'unknown'})",
                provider="gemini",
            )

        report = _extract_report(data)
        if not report:
            raise ProviderError(
                f"Interaction {interaction_id} completed without report content",
                provider="gemini",
            )
        return report
