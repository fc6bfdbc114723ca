"""Gemini generateContent adapter."""

from __future__ import annotations

import json
import logging
import mimetypes
from typing import TYPE_CHECKING, Any
import uuid

from parley._http import body_fragment
from parley.errors import StructuralResponseError
from parley.providers._utils import domain_of, to_gemini_schema
from parley.providers.models import (
    Message,
    ProviderTurnResult,
    Terminated,
    TextAnswer,
    ToolCallRequest,
    ToolCalls,
)
from parley.transport import Endpoint

if TYPE_CHECKING:
    from parley.chat import ConversationState
    from parley.config import Config
    from parley.providers.models import GenerationConfig

logger = logging.getLogger(__name__)

# Finish reasons that end a turn without usable output.
_BLOCKING_FINISH_REASONS = frozenset(
    {"SAFETY", "RECITATION", "BLOCKLIST", "PROHIBITED_CONTENT", "SPII"}
)


class GeminiAdapter:
    """Build ``generateContent`` payloads and interpret candidate parts."""

    name = "gemini"

    def __init__(self, config: Config) -> None:
        self.config = config

    def endpoint(self, model: str) -> Endpoint:
        base = self.config.gemini_base_url.rstrip("/")
        return Endpoint(
            url=f"{base}/v1beta/models/{model}:generateContent",
            provider="gemini",
            model=model,
        )

    def build_request(
        self,
        state: ConversationState,
        settings: GenerationConfig,
        *,
        first_call: bool,
    ) -> dict[str, Any]:
        """Serialize the session into a generateContent request body."""
        if state.previous_response_id:
            logger.debug("Gemini has no continuation handle; sending full history")

        generation_config: dict[str, Any] = {
            "maxOutputTokens": settings.max_output_tokens,
            "temperature": settings.temperature,
        }
        if settings.reasoning_effort is not None:
            generation_config["thinkingConfig"] = {
                "thinkingLevel": settings.reasoning_effort
            }

        declarations = [
            {
                "name": descriptor.name,
                "description": descriptor.description,
                "parameters": to_gemini_schema(descriptor.json_schema()),
            }
            for descriptor in state.tools.values()
        ]
        tools: list[dict[str, Any]] = []
        if declarations:
            tools.append({"functionDeclarations": declarations})
        if state.browsing:
            tools.append({"googleSearch": {}})
        if state.vector_store_ids:
            file_search: dict[str, Any] = {
                "fileSearchStoreNames": list(state.vector_store_ids)
            }
            if state.max_search_results is not None:
                file_search["topK"] = state.max_search_results
            tools.append({"fileSearch": file_search})

        forced = first_call and state.has_search_tool and bool(declarations)
        body: dict[str, Any] = {
            "contents": _serialize_history(state.messages),
            "generationConfig": generation_config,
            "tool_config": {
                "function_calling_config": {"mode": "ANY" if forced else "AUTO"}
            },
        }

        instructions = [
            m.content
            for m in state.messages
            if m.role in ("system", "context") and m.content
        ]
        if state.browsing and state.browsing_url:
            instructions.append(
                f"Only use web search results from {domain_of(state.browsing_url)}."
            )
        if instructions:
            body["systemInstruction"] = {
                "parts": [{"text": text} for text in instructions]
            }
        if tools:
            body["tools"] = tools
        return body

    def interpret_response(self, raw: dict[str, Any]) -> ProviderTurnResult:
        """Map the first candidate's parts onto text, tool calls or termination."""
        feedback = raw.get("promptFeedback")
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            return Terminated(reason=str(feedback["blockReason"]))

        candidates = raw.get("candidates")
        candidate = (
            candidates[0]
            if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict)
            else {}
        )
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        parts = [p for p in parts or [] if isinstance(p, dict)]

        calls: list[ToolCallRequest] = []
        for part in parts:
            fc = part.get("functionCall")
            if isinstance(fc, dict):
                args = fc.get("args")
                calls.append(
                    ToolCallRequest(
                        id=str(fc.get("id") or f"call_{uuid.uuid4().hex[:8]}"),
                        name=str(fc.get("name", "")),
                        arguments=dict(args) if isinstance(args, dict) else {},
                        provider_part=part,
                    )
                )
        if calls:
            return ToolCalls(calls=tuple(calls))

        texts = [
            p["text"]
            for p in parts
            if isinstance(p.get("text"), str) and not p.get("thought", False)
        ]
        if texts:
            return TextAnswer(text="".join(texts))

        finish_reason = candidate.get("finishReason")
        if finish_reason in _BLOCKING_FINISH_REASONS:
            return Terminated(reason=str(finish_reason))

        hint = None
        if finish_reason == "MAX_TOKENS":
            hint = "The token budget ran out before any text; raise max_output_tokens."
        raise StructuralResponseError(
            "Gemini response contained neither text nor a function call: "
            + body_fragment(json.dumps(raw)),
            hint=hint,
            provider="gemini",
            model=str(raw.get("modelVersion")) if raw.get("modelVersion") else None,
        )

    def file_search_results(self, raw: dict[str, Any]) -> list[dict[str, Any]]:
        """Return grounding chunks from the first candidate's metadata."""
        candidates = raw.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return []
        grounding = candidates[0].get("groundingMetadata") if isinstance(
            candidates[0], dict
        ) else None
        if not isinstance(grounding, dict):
            return []
        chunks = grounding.get("groundingChunks") or []
        return [
            c["retrievedContext"]
            for c in chunks
            if isinstance(c, dict) and isinstance(c.get("retrievedContext"), dict)
        ]

    def response_id(self, raw: dict[str, Any]) -> str | None:
        rid = raw.get("responseId")
        return rid if isinstance(rid, str) else None


def _function_response(msg: Message) -> dict[str, Any]:
    response: Any = {"result": msg.content}
    if msg.content:
        try:
            parsed = json.loads(msg.content)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            response = parsed
    return {"functionResponse": {"name": msg.name or "unknown_tool", "response": response}}


def _serialize_history(messages: list[Message]) -> list[dict[str, Any]]:
    """Turn provider-agnostic history into alternating user/model contents.

    Tool calls are re-sent inline as ``functionCall`` parts on a model turn and
    their results as ``functionResponse`` parts on the following user turn.
    """
    contents: list[dict[str, Any]] = []

    def append(role: str, parts: list[dict[str, Any]]) -> None:
        if not parts:
            return
        # Gemini enforces strict turn order; fold consecutive same-role parts.
        if contents and contents[-1]["role"] == role:
            contents[-1]["parts"].extend(parts)
        else:
            contents.append({"role": role, "parts": parts})

    for msg in messages:
        if msg.role in ("system", "context"):
            continue
        if msg.role == "tool":
            append("user", [_function_response(msg)])
        elif msg.role == "assistant":
            parts: list[dict[str, Any]] = []
            if msg.content:
                parts.append({"text": msg.content})
            for tc in msg.tool_calls:
                parts.append(
                    tc.provider_part
                    if tc.provider_part is not None
                    else {"functionCall": {"name": tc.name, "args": tc.arguments}}
                )
            append("model", parts)
        else:
            user_parts: list[dict[str, Any]] = []
            if msg.content:
                user_parts.append({"text": msg.content})
            for url in msg.image_urls:
                mime_type = mimetypes.guess_type(url)[0] or "image/jpeg"
                user_parts.append({"fileData": {"fileUri": url, "mimeType": mime_type}})
            append("user", user_parts)
    return contents
