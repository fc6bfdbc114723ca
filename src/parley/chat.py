"""Chat sessions: the tool-calling turn loop over either provider."""

from __future__ import annotations

from dataclasses import dataclass, field
import enum
import json
import logging
from typing import TYPE_CHECKING, Any, Literal

from parley.config import Config
from parley.dispatch import ToolDispatcher
from parley.errors import BudgetExceededError, ConfigurationError, ToolNotFoundError
from parley.knowledge import HttpKnowledgeFetcher
from parley.providers import adapter_for
from parley.providers._utils import is_reasoning_model, provider_for_model
from parley.providers.models import (
    GenerationConfig,
    Message,
    Terminated,
    TextAnswer,
    ToolCallRequest,
)
from parley.transport import Transport

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from parley.config import ProviderName
    from parley.knowledge import KnowledgeFetcher
    from parley.providers.base import ProviderAdapter
    from parley.tools import ToolDescriptor

logger = logging.getLogger(__name__)

# Below this many output tokens, browsing or reasoning likely truncates.
LOW_TOKEN_ADVISORY_THRESHOLD = 1000

ARGUMENTS_RETURNED = "Arguments returned to the caller; the tool was not executed."

OutcomeKind = Literal["text", "tool_result", "arguments", "chunks", "terminated"]


class TurnState(enum.Enum):
    """Where the turn loop currently stands."""

    AWAITING_CALL = "awaiting_call"
    IN_FLIGHT = "in_flight"
    TOOL_PENDING = "tool_pending"
    TEXT_DONE = "text_done"
    TERMINATED = "terminated"
    BUDGET_EXCEEDED = "budget_exceeded"


@dataclass
class ConversationState:
    """Mutable session state owned by one Chat."""

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    messages: list[Message] = field(default_factory=list)
    tools: dict[str, ToolDescriptor] = field(default_factory=dict)
    call_budget: int = 30
    call_count: int = 0
    #: Continuation handle supplied by the caller.
    previous_response_id: str | None = None
    #: Messages before this index are already known server-side.
    continuation_index: int = 0
    last_response_id: str | None = None
    knowledge_links: list[str] = field(default_factory=list)
    browsing: bool = False
    browsing_url: str | None = None
    vector_store_ids: tuple[str, ...] = ()
    max_search_results: int | None = None
    only_return_chunks: bool = False
    attributes: list[dict[str, Any]] = field(default_factory=list)

    @property
    def has_search_tool(self) -> bool:
        return self.browsing or bool(self.vector_store_ids)

    def request_history(self) -> list[Message]:
        """Messages a provider with server-side state still needs to see."""
        if self.previous_response_id:
            return self.messages[self.continuation_index :]
        return list(self.messages)


@dataclass(frozen=True)
class RunOutcome:
    """What the most recent ``Chat.run`` produced."""

    kind: OutcomeKind
    value: Any
    #: True when any call in the run hit the output-token budget.
    truncated: bool = False
    finish_reason: str | None = None
    response_id: str | None = None
    call_count: int = 0


class Chat:
    """A multi-turn conversation with optional tool calling.

    Example:
        chat = Chat(Config(model="gpt-4.1"))
        chat.add_tool(weather_tool, get_weather)
        chat.add_message("What's the weather in Paris?")
        answer = chat.run()
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        transport: Transport | None = None,
        fetcher: KnowledgeFetcher | None = None,
        adapters: Mapping[ProviderName, ProviderAdapter] | None = None,
        call_budget: int | None = None,
    ) -> None:
        self.config = config or Config()
        if call_budget is not None and call_budget < 1:
            raise ConfigurationError(f"call_budget must be ≥ 1, got {call_budget}")
        self.state = ConversationState(
            generation=GenerationConfig(
                model=self.config.model,
                temperature=self.config.temperature,
                max_output_tokens=self.config.max_output_tokens,
                reasoning_effort=self.config.reasoning_effort,
            ),
            call_budget=call_budget if call_budget is not None else self.config.call_budget,
        )
        self.dispatcher = ToolDispatcher()
        self._owns_transport = transport is None
        self._transport = transport or Transport(self.config)
        self._owns_fetcher = fetcher is None
        self._fetcher = fetcher
        self._adapters: dict[ProviderName, ProviderAdapter] = dict(adapters or {})
        self.turn_state = TurnState.AWAITING_CALL
        self.last_outcome: RunOutcome | None = None

    # --- Building the conversation ---

    def add_message(self, content: str, *, system: bool = False) -> Chat:
        """Append a user message, or a system instruction when *system* is set."""
        self.state.messages.append(
            Message(role="system" if system else "user", content=content)
        )
        return self

    def add_image(self, url: str, *, caption: str = "") -> Chat:
        """Append a user message carrying an image URL."""
        self.state.messages.append(
            Message(role="user", content=caption, image_urls=(url,))
        )
        return self

    def add_tool(
        self, descriptor: ToolDescriptor, func: Callable[..., Any] | None = None
    ) -> Chat:
        """Expose *descriptor* to the model, executed by *func* when requested.

        Tools that only return their arguments need no callable.
        """
        if descriptor.name in self.state.tools:
            raise ConfigurationError(
                f"Tool {descriptor.name!r} is already registered",
                hint="Tool names must be unique within a session.",
            )
        self.state.tools[descriptor.name] = descriptor
        if func is not None:
            self.dispatcher.register(descriptor.name, func)
        return self

    def add_knowledge_link(self, url: str | Iterable[str]) -> Chat:
        """Queue page(s) to fetch and fold in as context on the next run."""
        urls = [url] if isinstance(url, str) else list(url)
        self.state.knowledge_links.extend(urls)
        return self

    def enable_browsing(self, enabled: bool = True, *, url: str | None = None) -> Chat:
        """Let the model search the web, optionally restricted to *url*'s domain."""
        self.state.browsing = enabled
        self.state.browsing_url = url if enabled else None
        return self

    def enable_vector_store_search(
        self, vector_store_ids: str | Iterable[str], *, max_results: int | None = None
    ) -> Chat:
        """Let the model search the given vector stores."""
        ids = (
            (vector_store_ids,)
            if isinstance(vector_store_ids, str)
            else tuple(vector_store_ids)
        )
        if max_results is not None and max_results < 1:
            raise ConfigurationError(f"max_results must be ≥ 1, got {max_results}")
        self.state.vector_store_ids = ids
        self.state.max_search_results = max_results
        return self

    def only_return_chunks(self, enabled: bool = True) -> Chat:
        """Return retrieved file-search chunks instead of a model answer."""
        self.state.only_return_chunks = enabled
        return self

    def set_previous_response_id(self, response_id: str | None) -> Chat:
        """Resume server-side context; only later messages are re-sent."""
        self.state.previous_response_id = response_id
        self.state.continuation_index = len(self.state.messages)
        return self

    # --- Inspection ---

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self.state.messages]

    @property
    def attributes(self) -> list[dict[str, Any]]:
        """Attribute metadata recorded from file-search results."""
        return list(self.state.attributes)

    @property
    def last_response_id(self) -> str | None:
        return self.state.last_response_id

    @property
    def call_count(self) -> int:
        return self.state.call_count

    # --- The turn loop ---

    def run(
        self,
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        reasoning_effort: str | None = None,
    ) -> Any:
        """Call the model until it answers or a terminal tool ends the run.

        Returns the answer text, a terminal tool's result string, a
        ``return_arguments_only`` tool's argument dict, or retrieved chunks
        when ``only_return_chunks`` is enabled. Details land in
        ``last_outcome``.

        Raises:
            ConfigurationError: Model unset, missing credential, or an
                override out of range.
            BudgetExceededError: The session's call budget is spent.
            TransportError: The provider call failed.
            StructuralResponseError: The response had neither text nor tool calls.
            ToolNotFoundError: The model requested an unknown tool.

        When anything raises, ``turn_state`` ends as ``TERMINATED`` (or
        ``BUDGET_EXCEEDED``) and history keeps no half-finished tool turn.
        """
        settings = self.state.generation.merged(
            model=model,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            reasoning_effort=reasoning_effort,
        )
        if not settings.model:
            raise ConfigurationError(
                "No model selected",
                hint="Pass Config(model=...) or run(model=...).",
            )
        provider = provider_for_model(settings.model)
        self.config.api_key_for(provider)
        adapter = self._adapter(provider)
        self._advise_token_budget(settings)
        self._fold_knowledge_links()

        self.turn_state = TurnState.AWAITING_CALL
        try:
            return self._run_turns(adapter, settings, provider)
        except Exception:
            if self.turn_state is not TurnState.BUDGET_EXCEEDED:
                self.turn_state = TurnState.TERMINATED
            raise

    def _run_turns(
        self,
        adapter: ProviderAdapter,
        settings: GenerationConfig,
        provider: ProviderName,
    ) -> Any:
        endpoint = adapter.endpoint(settings.model or "")
        truncated = False
        while True:
            if self.state.call_count > self.state.call_budget:
                self.turn_state = TurnState.BUDGET_EXCEEDED
                raise BudgetExceededError(self.state.call_count, self.state.call_budget)

            body = adapter.build_request(
                self.state, settings, first_call=self.state.call_count == 0
            )
            self.turn_state = TurnState.IN_FLIGHT
            logger.debug(
                "Call %d to %s (%s)", self.state.call_count + 1, settings.model, provider
            )
            raw = self._transport.call(endpoint, body)
            self.state.call_count += 1
            truncated = truncated or raw.truncated

            response_id = adapter.response_id(raw.body)
            if response_id is not None:
                self.state.last_response_id = response_id

            chunks = adapter.file_search_results(raw.body)
            if chunks:
                self.state.attributes.extend(
                    c["attributes"] for c in chunks if isinstance(c.get("attributes"), dict)
                )
                if self.state.only_return_chunks:
                    self.turn_state = TurnState.TERMINATED
                    return self._finish("chunks", chunks, truncated, raw.finish_reason)

            result = adapter.interpret_response(raw.body)
            if isinstance(result, TextAnswer):
                self.state.messages.append(Message(role="assistant", content=result.text))
                self.turn_state = TurnState.TEXT_DONE
                return self._finish("text", result.text, truncated, raw.finish_reason)

            if isinstance(result, Terminated):
                logger.warning("%s ended the turn early: %s", provider, result.reason)
                if result.text:
                    self.state.messages.append(
                        Message(role="assistant", content=result.text, terminal=True)
                    )
                self.turn_state = TurnState.TERMINATED
                return self._finish(
                    "terminated", result.text, truncated, raw.finish_reason or result.reason
                )

            self.turn_state = TurnState.TOOL_PENDING
            terminal = self._handle_tool_calls(result.calls)
            if terminal is not None:
                kind, value = terminal
                self.turn_state = TurnState.TERMINATED
                return self._finish(kind, value, truncated, raw.finish_reason)
            self.turn_state = TurnState.AWAITING_CALL

    def _handle_tool_calls(
        self, calls: tuple[ToolCallRequest, ...]
    ) -> tuple[OutcomeKind, Any] | None:
        """Run requested tools in order; return a terminal outcome if one fires.

        Calls after a terminal tool are not executed. They get a placeholder
        result so the history stays well-formed for the next run. If a tool
        raises, the whole tool turn is rolled back before re-raising.
        """
        descriptors = []
        for call in calls:
            descriptor = self.state.tools.get(call.name)
            if descriptor is None:
                raise ToolNotFoundError(
                    call.name, hint=f"Known tools: {sorted(self.state.tools)}"
                )
            descriptors.append(descriptor)

        # Every call that will actually execute needs a callable.
        for call, descriptor in zip(calls, descriptors):
            if descriptor.return_arguments_only:
                break
            if call.name not in self.dispatcher:
                raise ToolNotFoundError(
                    call.name, hint="Register it with Chat.add_tool(descriptor, func)."
                )
            if descriptor.ends_conversation:
                break

        checkpoint = len(self.state.messages)
        try:
            return self._execute_tool_calls(calls, descriptors)
        except Exception:
            del self.state.messages[checkpoint:]
            raise

    def _execute_tool_calls(
        self,
        calls: tuple[ToolCallRequest, ...],
        descriptors: list[ToolDescriptor],
    ) -> tuple[OutcomeKind, Any] | None:
        self.state.messages.append(Message(role="assistant", tool_calls=calls))
        for index, (call, descriptor) in enumerate(zip(calls, descriptors)):
            if descriptor.return_arguments_only:
                self._append_tool_result(call, ARGUMENTS_RETURNED)
                self._skip_remaining(calls[index + 1 :], descriptor.name)
                self.state.messages.append(
                    Message(
                        role="assistant", content=json.dumps(call.arguments), terminal=True
                    )
                )
                return "arguments", dict(call.arguments)

            output = self.dispatcher.execute(
                call.name, call.arguments, descriptor.parameter_names
            )
            self._append_tool_result(call, output)
            if descriptor.ends_conversation:
                self._skip_remaining(calls[index + 1 :], descriptor.name)
                self.state.messages.append(
                    Message(role="assistant", content=output, terminal=True)
                )
                return "tool_result", output
        return None

    def _append_tool_result(self, call: ToolCallRequest, output: str) -> None:
        self.state.messages.append(
            Message(role="tool", content=output, tool_call_id=call.id, name=call.name)
        )

    def _skip_remaining(self, skipped: tuple[ToolCallRequest, ...], ended_by: str) -> None:
        if not skipped:
            return
        logger.warning(
            "Not executing %s: %s ended the conversation",
            [c.name for c in skipped],
            ended_by,
        )
        for call in skipped:
            self._append_tool_result(
                call, f"Not executed: the conversation was ended by {ended_by}."
            )

    def _finish(
        self, kind: OutcomeKind, value: Any, truncated: bool, finish_reason: str | None
    ) -> Any:
        self.last_outcome = RunOutcome(
            kind=kind,
            value=value,
            truncated=truncated,
            finish_reason=finish_reason,
            response_id=self.state.last_response_id,
            call_count=self.state.call_count,
        )
        logger.debug("Run finished: %s after %d call(s)", kind, self.state.call_count)
        return value

    def _adapter(self, provider: ProviderName) -> ProviderAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            adapter = adapter_for(provider, self.config)
            self._adapters[provider] = adapter
        return adapter

    def _advise_token_budget(self, settings: GenerationConfig) -> None:
        if settings.max_output_tokens >= LOW_TOKEN_ADVISORY_THRESHOLD:
            return
        reasons = []
        if self.state.browsing:
            reasons.append("browsing")
        if self.state.vector_store_ids:
            reasons.append("file search")
        if settings.reasoning_effort is not None or is_reasoning_model(
            settings.model or ""
        ):
            reasons.append("reasoning")
        if reasons:
            logger.warning(
                "max_output_tokens=%d is low with %s enabled; responses may be truncated",
                settings.max_output_tokens,
                " and ".join(reasons),
            )

    def _fold_knowledge_links(self) -> None:
        if not self.state.knowledge_links:
            return
        if self._fetcher is None:
            self._fetcher = HttpKnowledgeFetcher()
        queue = self.state.knowledge_links
        while queue:
            url = queue[0]
            content = self._fetcher.fetch(url)
            self.state.messages.append(
                Message(role="context", content=f"Information from {url}:\n{content}")
            )
            queue.pop(0)

    def close(self) -> None:
        """Release HTTP clients this session created."""
        if self._owns_transport:
            self._transport.close()
        if self._owns_fetcher and isinstance(self._fetcher, HttpKnowledgeFetcher):
            self._fetcher.close()

    def __enter__(self) -> Chat:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
