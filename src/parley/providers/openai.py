"""OpenAI Responses API adapter."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from parley._http import body_fragment
from parley.errors import StructuralResponseError
from parley.providers._utils import domain_of, is_reasoning_model
from parley.providers.models import (
    Message,
    ProviderTurnResult,
    Terminated,
    TextAnswer,
    ToolCallRequest,
    ToolCalls,
)
from parley.repair import parse_lenient
from parley.transport import Endpoint

if TYPE_CHECKING:
    from parley.chat import ConversationState
    from parley.config import Config
    from parley.providers.models import GenerationConfig

logger = logging.getLogger(__name__)


class OpenAIAdapter:
    """Build ``/v1/responses`` payloads and interpret their output items."""

    name = "openai"

    def __init__(self, config: Config) -> None:
        self.config = config

    def endpoint(self, model: str) -> Endpoint:
        base = self.config.openai_base_url.rstrip("/")
        return Endpoint(url=f"{base}/v1/responses", provider="openai", model=model)

    def build_request(
        self,
        state: ConversationState,
        settings: GenerationConfig,
        *,
        first_call: bool,
    ) -> dict[str, Any]:
        """Serialize the session into a Responses API request body."""
        model = settings.model or ""
        reasoning = is_reasoning_model(model)

        body: dict[str, Any] = {"model": model}
        # Instructions are not carried across previous_response_id, so every
        # system message is always re-sent.
        instructions = "\n\n".join(
            m.content for m in state.messages if m.role == "system" and m.content
        )
        if instructions:
            body["instructions"] = instructions

        input_items = _serialize_history(
            state.request_history(), context_role="developer" if reasoning else "system"
        )
        if not input_items:
            input_items.append(
                {"role": "user", "content": [{"type": "input_text", "text": ""}]}
            )
        body["input"] = input_items
        body["max_output_tokens"] = settings.max_output_tokens

        if reasoning:
            if settings.reasoning_effort is not None:
                body["reasoning"] = {"effort": settings.reasoning_effort}
        else:
            body["temperature"] = settings.temperature
            if settings.reasoning_effort is not None:
                logger.debug(
                    "Ignoring reasoning_effort for non-reasoning model %s", model
                )

        if state.previous_response_id:
            body["previous_response_id"] = state.previous_response_id

        tools: list[dict[str, Any]] = [
            {
                "type": "function",
                "name": descriptor.name,
                "description": descriptor.description,
                "parameters": descriptor.json_schema(),
            }
            for descriptor in state.tools.values()
        ]
        if state.browsing:
            web_search: dict[str, Any] = {"type": "web_search"}
            if state.browsing_url:
                web_search["filters"] = {
                    "allowed_domains": [domain_of(state.browsing_url)]
                }
            tools.append(web_search)
        if state.vector_store_ids:
            file_search: dict[str, Any] = {
                "type": "file_search",
                "vector_store_ids": list(state.vector_store_ids),
            }
            if state.max_search_results is not None:
                file_search["max_num_results"] = state.max_search_results
            tools.append(file_search)
            body["include"] = ["file_search_call.results"]

        if tools:
            body["tools"] = tools
            body["tool_choice"] = _tool_choice(state, first_call=first_call)

        metadata = self.config.request_metadata()
        if metadata:
            body["metadata"] = metadata
        return body

    def interpret_response(self, raw: dict[str, Any]) -> ProviderTurnResult:
        """Map ``output`` items onto text, tool calls or termination."""
        status = raw.get("status")
        output = raw.get("output")
        items = output if isinstance(output, list) else []

        calls: list[ToolCallRequest] = []
        for item in items:
            if isinstance(item, dict) and item.get("type") == "function_call":
                calls.append(_tool_call_from_item(item))
        if calls:
            return ToolCalls(calls=tuple(calls))

        for item in items:
            if not isinstance(item, dict) or item.get("type") != "message":
                continue
            for part in item.get("content") or []:
                if not isinstance(part, dict):
                    continue
                if part.get("type") == "output_text" and isinstance(
                    part.get("text"), str
                ):
                    return TextAnswer(text=part["text"])
                if part.get("type") == "refusal":
                    return Terminated(reason="refusal", text=str(part.get("refusal", "")))

        if status in {"failed", "cancelled"}:
            error = raw.get("error")
            message = error.get("message", "") if isinstance(error, dict) else ""
            return Terminated(reason=str(status), text=str(message))

        hint = None
        if status == "incomplete":
            hint = "The token budget ran out before any text; raise max_output_tokens."
        raise StructuralResponseError(
            "OpenAI response contained neither text nor a function call: "
            + body_fragment(json.dumps(raw)),
            hint=hint,
            provider="openai",
            model=str(raw.get("model")) if raw.get("model") else None,
        )

    def file_search_results(self, raw: dict[str, Any]) -> list[dict[str, Any]]:
        chunks: list[dict[str, Any]] = []
        for item in raw.get("output") or []:
            if isinstance(item, dict) and item.get("type") == "file_search_call":
                for result in item.get("results") or []:
                    if isinstance(result, dict):
                        chunks.append(result)
        return chunks

    def response_id(self, raw: dict[str, Any]) -> str | None:
        rid = raw.get("id")
        return rid if isinstance(rid, str) else None


def _tool_choice(state: ConversationState, *, first_call: bool) -> Any:
    """Force the search tool on the first call, automatic afterwards."""
    if not first_call:
        return "auto"
    if state.browsing and state.vector_store_ids:
        return "required"
    if state.vector_store_ids:
        return {"type": "file_search"}
    if state.browsing:
        return {"type": "web_search"}
    return "auto"


def _tool_call_from_item(item: dict[str, Any]) -> ToolCallRequest:
    raw_arguments = item.get("arguments")
    text = raw_arguments if isinstance(raw_arguments, str) else "{}"
    parsed = parse_lenient(text)
    if not isinstance(parsed, dict):
        logger.warning(
            "Could not parse arguments for %s; using an empty mapping",
            item.get("name"),
        )
        parsed = {}
    return ToolCallRequest(
        id=str(item.get("call_id") or item.get("id") or ""),
        name=str(item.get("name", "")),
        arguments=parsed,
        raw_arguments=text,
    )


def _serialize_history(
    messages: list[Message], *, context_role: str
) -> list[dict[str, Any]]:
    """Flatten provider-agnostic history into Responses API input items."""
    items: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "system":
            continue
        if msg.role == "context":
            items.append(
                {
                    "role": context_role,
                    "content": [{"type": "input_text", "text": msg.content}],
                }
            )
            continue
        if msg.role == "tool":
            items.append(
                {
                    "type": "function_call_output",
                    "call_id": msg.tool_call_id,
                    "output": msg.content,
                }
            )
            continue
        if msg.role == "assistant":
            if msg.content:
                items.append(
                    {
                        "role": "assistant",
                        "content": [{"type": "output_text", "text": msg.content}],
                    }
                )
            for tc in msg.tool_calls:
                items.append(
                    {
                        "type": "function_call",
                        "call_id": tc.id,
                        "name": tc.name,
                        "arguments": tc.raw_arguments
                        if tc.raw_arguments is not None
                        else json.dumps(tc.arguments),
                    }
                )
            continue

        content: list[dict[str, Any]] = []
        if msg.content:
            content.append({"type": "input_text", "text": msg.content})
        for url in msg.image_urls:
            content.append({"type": "input_image", "image_url": url})
        if content:
            items.append({"role": "user", "content": content})
    return items
