"""IdeaForge exception hierarchy.

Every error raised by the store, the completion boundary or the backup
layer derives from IdeaForgeError so outer surfaces can catch at the
point of user-visible feedback.
"""

from __future__ import annotations

from typing import Any


class IdeaForgeError(Exception):
    """Base exception for all IdeaForge errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class NotFoundError(IdeaForgeError):
    """Raised when an operation needs a record that does not exist.

    Plain reads return None instead; this is for mutations addressed at a
    missing id.
    """


class StoreUnavailableError(IdeaForgeError):
    """Raised when the backing record store cannot be reached."""


class ProviderError(IdeaForgeError):
    """Raised when the completion provider fails (network, auth, upstream)."""


class MalformedCompletionError(ProviderError):
    """Raised when a structured completion has no parseable JSON payload."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message, {"raw": raw[:200]} if raw else None)
        self.raw = raw


class BackupError(IdeaForgeError):
    """Raised when a backup file cannot be imported."""


class ConfirmationRequiredError(IdeaForgeError):
    """Raised when a destructive action is attempted without confirmation."""
