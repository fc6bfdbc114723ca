"""Test helpers (small, reusable doubles and canned provider bodies).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off transport stubs as coverage expands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from parley.transport import Endpoint, RawResponse, extract_finish_reason

OPENAI_MODEL = "gpt-4.1"
GEMINI_MODEL = "gemini-2.5-flash"


@dataclass
class StubTransport:
    """Transport double that replays scripted response bodies.

    Records every (endpoint, body) pair so tests can assert on the exact
    payloads the engine built. Exceptions in the script are raised.
    """

    script: list[dict[str, Any] | BaseException] = field(default_factory=list)
    calls: list[tuple[Endpoint, dict[str, Any]]] = field(default_factory=list)

    def call(self, endpoint: Endpoint, body: dict[str, Any]) -> RawResponse:
        self.calls.append((endpoint, body))
        if not self.script:
            raise AssertionError("StubTransport script exhausted")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        reason = extract_finish_reason(endpoint.provider, item)
        return RawResponse(
            provider=endpoint.provider,
            body=item,
            finish_reason=reason,
            truncated=reason in {"max_output_tokens", "MAX_TOKENS"},
        )

    def close(self) -> None:
        pass


def openai_text(text: str, *, response_id: str = "resp_1") -> dict[str, Any]:
    """A completed Responses API body with one text message."""
    return {
        "id": response_id,
        "status": "completed",
        "output": [
            {
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": text}],
            }
        ],
    }


def openai_function_calls(
    *calls: tuple[str, str, str], response_id: str = "resp_fc"
) -> dict[str, Any]:
    """A Responses API body requesting ``(call_id, name, arguments)`` calls."""
    return {
        "id": response_id,
        "status": "completed",
        "output": [
            {
                "type": "function_call",
                "id": f"fc_{call_id}",
                "call_id": call_id,
                "name": name,
                "arguments": arguments,
            }
            for call_id, name, arguments in calls
        ],
    }


def gemini_text(text: str) -> dict[str, Any]:
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": text}]},
                "finishReason": "STOP",
            }
        ]
    }


def gemini_function_call(name: str, args: dict[str, Any]) -> dict[str, Any]:
    return {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [{"functionCall": {"name": name, "args": args}}],
                },
                "finishReason": "STOP",
            }
        ]
    }
