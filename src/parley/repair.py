"""Tolerant parsing of near-valid JSON emitted by models.

Models occasionally truncate tool-call arguments when they run out of output
tokens. The repair here is conservative: it only touches lines that look like
malformed ``"key": value`` entries and leaves well-formed JSON alone.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_DANGLING_KEY_RE = re.compile(r'^\s*"[^"]*"\s*:\s*,?\s*$')
_TRAILING_COMMA_RE = re.compile(r",\s*$")


def parse_lenient(text: str | None) -> Any:
    """Parse *text* as JSON, repairing common truncation damage.

    Returns the parsed value, or ``None`` when the text cannot be recovered.
    Never raises.
    """
    if not text:
        return None
    try:
        return json.loads(text)
    except (ValueError, RecursionError, TypeError):
        # JSONDecodeError is a ValueError; so are oversized integer literals.
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        logger.warning("Unrecoverable structured output: no enclosing braces")
        return None

    interior = text[start + 1 : end]
    lines = [_repair_line(line) for line in interior.splitlines()]
    lines = [line for line in lines if line.strip()]
    if lines:
        lines[-1] = _TRAILING_COMMA_RE.sub("", lines[-1])
    candidate = "{\n" + "\n".join(lines) + "\n}"

    try:
        return json.loads(candidate)
    except (ValueError, RecursionError) as e:
        logger.warning("Failed to repair structured output: %s", e)
        return None


def _repair_line(line: str) -> str:
    stripped = line.rstrip()
    if not stripped.strip():
        return stripped
    has_comma = stripped.endswith(",")
    body = stripped[:-1] if has_comma else stripped
    suffix = "," if has_comma else ""

    if _DANGLING_KEY_RE.match(stripped) or (
        body.rstrip().endswith(":") and _unescaped_quotes(body) % 2 == 0
    ):
        # "key":  ->  "key": ""
        return f'{body.rstrip()} ""{suffix}'

    if ":" not in body:
        token = body.strip()
        # Leave structural lines alone.
        if token in {"{", "}", "[", "]", "},", "],"} or not token.startswith('"'):
            return stripped
        if _unescaped_quotes(token) % 2 == 1:
            token += '"'
        return f'{_indent(body)}{token}: ""{suffix}'

    if _unescaped_quotes(body) % 2 == 1:
        return f'{body}"{suffix}'
    return stripped


def _unescaped_quotes(text: str) -> int:
    count = 0
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
        elif ch == '"':
            count += 1
    return count


def _indent(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]
