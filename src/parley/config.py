"""Configuration: frozen Config with lazily required provider credentials."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import os
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal

from dotenv import load_dotenv

from parley._http import GEMINI_BASE_URL, OPENAI_BASE_URL
from parley.errors import ConfigurationError
from parley.retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Mapping

load_dotenv()

ProviderName = Literal["gemini", "openai"]

# Provider-specific API key environment variable names
API_KEY_ENV_VARS: dict[ProviderName, str] = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
}

DEFAULT_CALL_BUDGET = 30


@dataclass(frozen=True)
class Config:
    """Immutable, process-wide settings injected into Transport and Chat.

    Credentials are resolved from the standard environment variables when not
    passed explicitly. A credential is only required once a run actually
    targets that provider, so a Gemini-only application needs no OpenAI key.

    Example:
        config = Config(model="gpt-4.1")
        # OPENAI_API_KEY is picked up from the environment
    """

    #: Default model; a per-run override may replace it.
    model: str | None = None
    #: Auto-resolved from ``OPENAI_API_KEY`` when *None*.
    openai_api_key: str | None = None
    #: Auto-resolved from ``GEMINI_API_KEY`` when *None*.
    gemini_api_key: str | None = None
    temperature: float = 0.5
    max_output_tokens: int = 1000
    reasoning_effort: str | None = None
    call_budget: int = DEFAULT_CALL_BUDGET
    #: Log full request/response bodies at INFO level.
    verbose: bool = False
    #: Merged into every OpenAI-style request as ``metadata``.
    metadata: Mapping[str, str] = field(default_factory=dict)
    openai_base_url: str = OPENAI_BASE_URL
    gemini_base_url: str = GEMINI_BASE_URL
    timeout_s: float = 120.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Auto-resolve API keys and validate configuration."""
        if self.openai_api_key is None:
            object.__setattr__(
                self, "openai_api_key", os.environ.get(API_KEY_ENV_VARS["openai"])
            )
        if self.gemini_api_key is None:
            object.__setattr__(
                self, "gemini_api_key", os.environ.get(API_KEY_ENV_VARS["gemini"])
            )

        if self.call_budget < 1:
            raise ConfigurationError(
                f"call_budget must be ≥ 1, got {self.call_budget}",
                hint="This caps how many model calls one session may issue.",
            )
        if self.max_output_tokens <= 0:
            raise ConfigurationError(
                f"max_output_tokens must be positive, got {self.max_output_tokens}",
                hint="Pass max_output_tokens=4000 or greater for reasoning models.",
            )
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError(
                f"temperature must be between 0 and 2, got {self.temperature}",
            )
        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be positive, got {self.timeout_s}",
            )
        if self.model is not None and not self.model.strip():
            raise ConfigurationError(
                "model must be a non-empty string when provided",
                hint="Pass model='gpt-4.1' or model='gemini-2.5-flash'.",
            )

        # Freeze metadata so the shared config cannot drift during a session.
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def api_key_for(self, provider: ProviderName) -> str:
        """Return the credential for *provider* or fail before any network call."""
        key = self.openai_api_key if provider == "openai" else self.gemini_api_key
        if not key:
            env_var = API_KEY_ENV_VARS[provider]
            raise ConfigurationError(
                f"API key required for {provider}",
                hint=f"Set {env_var} environment variable or pass {provider}_api_key=...",
            )
        return key

    def request_metadata(self) -> dict[str, Any]:
        """Return a mutable copy of the global request metadata."""
        return dict(self.metadata)

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(model={self.model!r}, "
            f"openai_api_key={'[REDACTED]' if self.openai_api_key else None}, "
            f"gemini_api_key={'[REDACTED]' if self.gemini_api_key else None}, "
            f"call_budget={self.call_budget}, verbose={self.verbose})"
        )

    __repr__ = __str__

    def __hash__(self) -> int:
        # MappingProxyType is unhashable; hash metadata by its sorted items.
        return hash(
            tuple(
                tuple(sorted(value.items()))
                if isinstance(value, MappingProxyType)
                else value
                for value in (getattr(self, f.name) for f in fields(self))
            )
        )
