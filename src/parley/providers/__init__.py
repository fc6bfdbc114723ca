"""Provider adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import ProviderAdapter
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter

if TYPE_CHECKING:
    from parley.config import Config, ProviderName

__all__ = [
    "GeminiAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "adapter_for",
]


def adapter_for(provider: ProviderName, config: Config) -> ProviderAdapter:
    """Return the adapter that speaks *provider*'s wire format."""
    if provider == "gemini":
        return GeminiAdapter(config)
    return OpenAIAdapter(config)
