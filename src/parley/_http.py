"""Small HTTP-related constants shared across Parley.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

# Retryable status codes shared by the transport and retry policy.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503})

OPENAI_BASE_URL = "https://api.openai.com"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"

# Maximum characters of a response body kept on errors and in log lines.
BODY_FRAGMENT_CHARS = 500


def body_fragment(text: str) -> str:
    """Return a bounded prefix of *text* for diagnostics."""
    if len(text) <= BODY_FRAGMENT_CHARS:
        return text
    return text[:BODY_FRAGMENT_CHARS] + "..."
