"""Completion boundary: providers, prompt templates and JSON extraction."""

from ideaforge.llm.gemini import GeminiProvider
from ideaforge.llm.ollama import OllamaProvider
from ideaforge.llm.provider import CompletionProvider
from ideaforge.llm.service import CompletionService, create_provider

__all__ = [
    "CompletionProvider",
    "CompletionService",
    "GeminiProvider",
    "OllamaProvider",
    "create_provider",
]
