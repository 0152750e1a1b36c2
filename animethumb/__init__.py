"""Anime-style video thumbnail generator backed by the OpenRouter image API."""

__version__ = "0.1.0"
