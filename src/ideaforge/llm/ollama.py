"""Ollama (local model) completion provider."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ideaforge.exceptions import ProviderError
from ideaforge.llm.provider import DEFAULT_TIMEOUT, CompletionProvider
from ideaforge.models.settings import DEFAULT_OLLAMA_ENDPOINT

logger = logging.getLogger(__name__)


class OllamaProvider(CompletionProvider):
    """Calls ``/api/generate`` on a local Ollama server, non-streaming."""

    name = "ollama"

    def __init__(
        self,
        endpoint: str = DEFAULT_OLLAMA_ENDPOINT,
        model: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self.timeout, transport=self._transport)

    async def complete(
        self,
        prompt: str,
        *,
        structured: bool = False,
        high_effort: bool = False,
    ) -> str:
        if not self.model:
            raise ProviderError("No Ollama model specified. Please select a model in Settings.")
        payload: dict[str, Any] = {"model": self.model, "prompt": prompt, "stream": False}
        if structured:
            payload["format"] = "json"

        try:
            async with self._client() as client:
                response = await client.post(f"{self.endpoint}/api/generate", json=payload)
                response.raise_for_status()
        except httpx.ConnectError as e:
            raise ProviderError(
                f"Cannot connect to Ollama at {self.endpoint}. Is Ollama running?"
            ) from e
        except httpx.TimeoutException as e:
            raise ProviderError(f"Request timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Ollama API error: {e.response.status_code} - {e.response.text}",
                {"status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Failed to parse response JSON: {e}") from e

        text = data.get("response") if isinstance(data, dict) else None
        if text is None:
            raise ProviderError(f"Empty response from model. Response data: {data}")

        logger.debug("Ollama %s returned %d chars", self.model, len(text))
        return text

    async def check_connection(self) -> bool:
        """True when the Ollama server answers on ``/api/tags``."""
        try:
            async with self._client(timeout=5.0) as client:
                response = await client.get(f"{self.endpoint}/api/tags")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def list_models(self) -> list[str]:
        """Names of the models installed on the Ollama server."""
        try:
            async with self._client(timeout=10.0) as client:
                response = await client.get(f"{self.endpoint}/api/tags")
                response.raise_for_status()
        except httpx.ConnectError as e:
            raise ProviderError(f"Cannot connect to Ollama at {self.endpoint}. Is Ollama running?") from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(f"Ollama API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Error listing models: {e}") from e

        try:
            return [m["name"] for m in response.json().get("models", [])]
        except (ValueError, AttributeError, KeyError, TypeError) as e:
            raise ProviderError(f"Unexpected model list from Ollama: {e}") from e
