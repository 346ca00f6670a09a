"""IdeaForge: capture, organize and enrich startup ideas with an LLM advisor."""

__version__ = "0.1.0"
