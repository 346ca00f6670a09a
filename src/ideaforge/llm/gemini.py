"""Google Gemini completion provider (generateContent REST API)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ideaforge.exceptions import ProviderError
from ideaforge.llm.provider import DEFAULT_TIMEOUT, CompletionProvider

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
STANDARD_MODEL = "gemini-flash-latest"
THINKING_MODEL = "gemini-2.0-flash-exp"


class GeminiProvider(CompletionProvider):
    """Calls ``models/{model}:generateContent`` with an API key."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = GEMINI_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ProviderError("No Gemini API key configured. Add one in Settings.")
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _payload(self, prompt: str, structured: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if structured:
            payload["generationConfig"] = {"responseMimeType": "application/json"}
        return payload

    async def complete(
        self,
        prompt: str,
        *,
        structured: bool = False,
        high_effort: bool = False,
    ) -> str:
        model = THINKING_MODEL if high_effort else STANDARD_MODEL
        url = f"{self.base_url}/models/{model}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url,
                    params={"key": self._api_key},
                    json=self._payload(prompt, structured),
                )
        except httpx.ConnectError as e:
            raise ProviderError("Cannot connect to the Gemini API") from e
        except httpx.TimeoutException as e:
            raise ProviderError(f"Request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Gemini request failed: {e}") from e

        if not response.is_success:
            raise ProviderError(_error_message(response), {"status": response.status_code})

        try:
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError("Gemini returned an unexpected response shape") from e

        logger.debug("Gemini %s returned %d chars", model, len(text))
        return text


def _error_message(response: httpx.Response) -> str:
    """Prefer the upstream ``error.message`` when the body carries one."""
    try:
        message = response.json().get("error", {}).get("message")
    except (ValueError, AttributeError):
        message = None
    return message or f"Gemini API Error ({response.status_code})"
