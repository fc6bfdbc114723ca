"""Domain models shared by the engine and the provider adapters."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal

from parley.errors import ConfigurationError

Role = Literal["system", "context", "user", "assistant", "tool"]


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    #: Argument text exactly as the provider sent it (OpenAI-style only).
    raw_arguments: str | None = None
    #: The provider's own part, re-sent verbatim on the next turn (Gemini-style).
    provider_part: dict[str, Any] | None = None


@dataclass(frozen=True)
class Message:
    """One provider-agnostic conversation entry.

    ``system`` messages are session instructions, ``context`` messages are
    synthetic context (knowledge links) sent inline, ``tool`` messages carry a
    tool result keyed by ``tool_call_id``.
    """

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_call_id: str | None = None
    #: Tool name for ``tool`` messages.
    name: str | None = None
    image_urls: tuple[str, ...] = ()
    #: Marks the message that closed a run via a terminal tool.
    terminal: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return a plain-dict view for inspection and logging."""
        out: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [
                {"id": tc.id, "name": tc.name, "arguments": tc.arguments}
                for tc in self.tool_calls
            ]
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            out["name"] = self.name
        if self.image_urls:
            out["image_urls"] = list(self.image_urls)
        if self.terminal:
            out["terminal"] = True
        return out


@dataclass(frozen=True)
class GenerationConfig:
    """Model selection and sampling settings for one request."""

    model: str | None = None
    temperature: float = 0.5
    max_output_tokens: int = 1000
    reasoning_effort: str | None = None

    def __post_init__(self) -> None:
        """Range checks matching Config; merged overrides are re-checked."""
        if self.max_output_tokens <= 0:
            raise ConfigurationError(
                f"max_output_tokens must be positive, got {self.max_output_tokens}",
                hint="Pass max_output_tokens=4000 or greater for reasoning models.",
            )
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError(
                f"temperature must be between 0 and 2, got {self.temperature}",
            )

    def merged(
        self,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        reasoning_effort: str | None = None,
    ) -> GenerationConfig:
        """Return a copy with every non-None override applied."""
        overrides: dict[str, Any] = {}
        if model is not None:
            overrides["model"] = model
        if temperature is not None:
            overrides["temperature"] = temperature
        if max_output_tokens is not None:
            overrides["max_output_tokens"] = max_output_tokens
        if reasoning_effort is not None:
            overrides["reasoning_effort"] = reasoning_effort
        return replace(self, **overrides) if overrides else self


@dataclass(frozen=True)
class TextAnswer:
    """The model answered in plain text."""

    text: str


@dataclass(frozen=True)
class ToolCalls:
    """The model requested one or more tool calls, in response order."""

    calls: tuple[ToolCallRequest, ...]


@dataclass(frozen=True)
class Terminated:
    """The provider ended the turn early (refusal, safety block, failure)."""

    reason: str
    text: str = ""


ProviderTurnResult = TextAnswer | ToolCalls | Terminated
