"""Error types surfaced by the thumbnail generator."""
from __future__ import annotations


class ThumbnailError(RuntimeError):
    """Base class for errors rendered in the error state."""


class EmptyTitle(ThumbnailError):
    """Raised when the title is empty after trimming."""

    def __init__(self, message: str = "Please enter a title before generating an image.") -> None:
        super().__init__(message)


class MissingCredentials(ThumbnailError):
    """Raised when no OpenRouter API key is configured."""

    def __init__(
        self,
        message: str = "OPENROUTER_API_KEY is not set. Provide it in the environment or via the .env file.",
    ) -> None:
        super().__init__(message)


class InvalidStyleKey(ThumbnailError):
    """Raised when a style key is not part of the style catalog."""

    def __init__(self, style_key: str) -> None:
        super().__init__(f"Unknown style '{style_key}'.")
        self.style_key = style_key


class NoImageReturned(ThumbnailError):
    """Raised when the provider answers successfully but without an image."""

    def __init__(self, message: str = "The image service did not return an image.") -> None:
        super().__init__(message)


class RemoteError(ThumbnailError):
    """Raised when the OpenRouter API call fails or returns an invalid response."""


class InvalidTransition(ThumbnailError):
    """Raised when a state transition is not in the transition table."""
