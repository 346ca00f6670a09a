"""Completion provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

DEFAULT_TIMEOUT = 120.0


class CompletionProvider(ABC):
    """Single-shot prompt in, text out.

    Implementations raise ProviderError for network, auth and upstream
    failures, including timeouts.
    """

    name: str = "provider"

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        structured: bool = False,
        high_effort: bool = False,
    ) -> str:
        """Return the model's text for ``prompt``.

        Args:
            prompt: Full prompt text
            structured: Ask the provider for JSON output where supported
            high_effort: Prefer the slower, stronger model where one exists
        """
