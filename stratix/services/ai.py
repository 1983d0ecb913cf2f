"""AI collaborator boundary.

Onboarding validation and transformation ask an external text service for
suggestions. They only see the ``AISuggester`` interface; the HTTP
implementation talks to the configured AI gateway.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from stratix.core import settings, get_logger
from stratix.exceptions import AIServiceError

logger = get_logger(__name__)


class AISuggester(ABC):
    """Turns a prompt plus context into free text."""

    @abstractmethod
    def suggest(self, text: str, context: Optional[Dict[str, Any]] = None) -> str:
        ...


class NullSuggester(AISuggester):
    """Used when AI is disabled; always answers with an empty string."""

    def suggest(self, text: str, context: Optional[Dict[str, Any]] = None) -> str:
        return ""


class HttpAISuggester(AISuggester):
    """Posts prompts to the AI gateway and returns the ``text`` field of the reply."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 5.0, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def suggest(self, text: str, context: Optional[Dict[str, Any]] = None) -> str:
        payload = {"prompt": text, "context": context or {}}
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            if self._client is not None:
                response = self._client.post(f"{self.base_url}/suggest", json=payload, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(f"{self.base_url}/suggest", json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"AI gateway request failed: {e}")
            raise AIServiceError(str(e)) from e

        result = body.get("text") if isinstance(body, dict) else None
        if not isinstance(result, str):
            raise AIServiceError("AI gateway returned no text")
        return result


def build_suggester(enabled: bool) -> AISuggester:
    """HTTP suggester when the feature is on and the gateway configured, else the null one."""
    if enabled and settings.ai_gateway_configured:
        return HttpAISuggester(
            settings.ai_gateway_url,
            settings.ai_gateway_api_key,
            timeout=settings.ai_timeout_seconds,
        )
    return NullSuggester()
