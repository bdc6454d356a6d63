"""Gemini generateContent client used for name-to-ticker resolution."""
import logging
from typing import Any

import httpx

from depot_quotes.core.config import Settings, get_settings
from depot_quotes.core.exceptions import UpstreamFormatError, UpstreamUnavailableError
from depot_quotes.providers.base import ReasoningServiceInterface

logger = logging.getLogger(__name__)

SERVICE_NAME = "reasoning_service"


class GeminiReasoningService(ReasoningServiceInterface):
    """
    Gemini REST client that asks for JSON-only answers.

    Each call is bounded twice: by the HTTP timeout and by maxOutputTokens.
    The API key travels as a query parameter, so httpx request logging is
    kept at WARNING by configure_structured_logging().
    """

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.settings.gemini_timeout)

    @property
    def provider_name(self) -> str:
        return "gemini"

    @property
    def endpoint(self) -> str:
        base = self.settings.gemini_base_url.rstrip("/")
        return f"{base}/models/{self.settings.gemini_model}:generateContent"

    def _build_body(self, prompt: str, max_output_tokens: int | None) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": self.settings.gemini_temperature,
                "maxOutputTokens": max_output_tokens or self.settings.gemini_max_output_tokens,
            },
        }

    async def generate_json(self, prompt: str, max_output_tokens: int | None = None) -> str:
        if not self.settings.gemini_api_key:
            raise UpstreamUnavailableError(None, "Gemini API key not configured", service=SERVICE_NAME)

        try:
            response = await self.client.post(
                self.endpoint,
                params={"key": self.settings.gemini_api_key},
                json=self._build_body(prompt, max_output_tokens),
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Gemini request timed out after {self.settings.gemini_timeout}s")
            raise UpstreamUnavailableError(None, "Request timed out", service=SERVICE_NAME) from e
        except httpx.HTTPError as e:
            logger.warning(f"Gemini transport error: {type(e).__name__}")
            raise UpstreamUnavailableError(None, "Connection error", service=SERVICE_NAME) from e

        if not response.is_success:
            logger.warning(f"Gemini returned {response.status_code}: {response.text[:200]}")
            raise UpstreamUnavailableError(
                response.status_code, response.reason_phrase, service=SERVICE_NAME
            )

        try:
            data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamFormatError(
                f"Unexpected Gemini response structure: {type(e).__name__}",
                raw=response.text[:500],
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
