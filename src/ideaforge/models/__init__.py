"""IdeaForge data models."""

from ideaforge.models.folder import Folder
from ideaforge.models.idea import STATUS_LABELS, ChatMessage, Idea, IdeaStatus
from ideaforge.models.settings import AppSettings, LLMProvider
from ideaforge.models.suggestions import FolderSuggestion, GeneratedIdea, MvpSelection

__all__ = [
    "STATUS_LABELS",
    "AppSettings",
    "ChatMessage",
    "Folder",
    "FolderSuggestion",
    "GeneratedIdea",
    "Idea",
    "IdeaStatus",
    "LLMProvider",
    "MvpSelection",
]
