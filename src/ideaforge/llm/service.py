"""Completion service: the single entry point the engines call."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ideaforge.llm.gemini import GeminiProvider
from ideaforge.llm.ollama import OllamaProvider
from ideaforge.llm.parsing import extract_json_array, extract_json_object
from ideaforge.llm.provider import DEFAULT_TIMEOUT, CompletionProvider
from ideaforge.models.settings import AppSettings, LLMProvider

if TYPE_CHECKING:
    from ideaforge.core.settings import SettingsService

logger = logging.getLogger(__name__)

ProviderFactory = Callable[..., CompletionProvider]


def create_provider(settings: AppSettings, *, timeout: float = DEFAULT_TIMEOUT) -> CompletionProvider:
    """Build the provider named by ``settings.provider``.

    Raises:
        ProviderError: If the selected provider is missing its credentials
    """
    if settings.provider == LLMProvider.OLLAMA:
        return OllamaProvider(settings.ollama_endpoint, settings.ollama_model, timeout=timeout)
    return GeminiProvider(settings.gemini_key, timeout=timeout)


class CompletionService:
    """Routes prompts to the provider selected by the current settings.

    The provider is built lazily from ``SettingsService.current`` and
    dropped whenever the settings change, so the next call picks up the new
    provider, key or model.
    """

    def __init__(
        self,
        settings: SettingsService,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        provider_factory: ProviderFactory | None = None,
    ) -> None:
        self._settings = settings
        self.timeout = timeout
        self._factory = provider_factory or create_provider
        self._provider: CompletionProvider | None = None
        self._unsubscribe = settings.subscribe(self._on_settings_changed)

    async def _on_settings_changed(self, settings: AppSettings) -> None:
        logger.debug("Settings changed; provider will be rebuilt for %s", settings.provider)
        self._provider = None

    def is_configured(self) -> bool:
        return self._settings.current.is_configured()

    @property
    def provider(self) -> CompletionProvider:
        if self._provider is None:
            self._provider = self._factory(self._settings.current, timeout=self.timeout)
        return self._provider

    async def complete(
        self,
        prompt: str,
        *,
        structured: bool = False,
        high_effort: bool = False,
    ) -> str:
        return await self.provider.complete(prompt, structured=structured, high_effort=high_effort)

    async def complete_json_array(self, prompt: str, *, high_effort: bool = False) -> list[Any]:
        """Structured completion whose payload is a JSON array."""
        text = await self.complete(prompt, structured=True, high_effort=high_effort)
        return extract_json_array(text)

    async def complete_json_object(self, prompt: str, *, high_effort: bool = False) -> dict[str, Any]:
        """Structured completion whose payload is a JSON object."""
        text = await self.complete(prompt, structured=True, high_effort=high_effort)
        return extract_json_object(text)

    def close(self) -> None:
        self._unsubscribe()
