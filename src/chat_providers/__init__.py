"""Async client layer over OpenAI-style chat-completion providers."""

__version__ = "0.1.0"
