"""Shared utilities for provider adapters."""

from __future__ import annotations

from copy import deepcopy
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from parley.config import ProviderName

_REASONING_MODEL_RE = re.compile(r"^(o\d|gpt-5)")


def provider_for_model(model: str) -> ProviderName:
    """Route ``gemini*`` models to Gemini and everything else to OpenAI."""
    return "gemini" if model.lower().startswith("gemini") else "openai"


def is_reasoning_model(model: str) -> bool:
    """Return True for OpenAI reasoning models (o-series and gpt-5 family)."""
    return bool(_REASONING_MODEL_RE.match(model.lower()))


def to_gemini_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Uppercase every ``type`` value for Gemini's OpenAPI-style schema."""

    def walk(node: Any) -> Any:
        if isinstance(node, list):
            return [walk(item) for item in node]
        if not isinstance(node, dict):
            return node
        updated: dict[str, Any] = {}
        for key, value in node.items():
            if key == "type" and isinstance(value, str):
                updated[key] = value.upper()
            elif key == "properties" and isinstance(value, dict):
                # Property names are user data, only their schemas are walked.
                updated[key] = {name: walk(sub) for name, sub in value.items()}
            else:
                updated[key] = walk(value)
        return updated

    return walk(deepcopy(schema))


def domain_of(url: str) -> str:
    """Return the bare host of *url* (``https://a.b/c`` -> ``a.b``)."""
    host = re.sub(r"^[a-z]+://", "", url.strip(), flags=re.IGNORECASE)
    return host.split("/", 1)[0]
