"""Bounded retry policy with exponential backoff.

Design goals:
- Small API surface
- Explicit state (policy + attempt counters)
- No brittle substring matching for retry decisions
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from parley._http import RETRYABLE_STATUS_CODES

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy: ``min(initial * multiplier**attempt, cap)``."""

    max_attempts: int = 5
    initial_delay_s: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay_s: float = 60.0

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy.max_attempts must be >= 1")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("RetryPolicy.backoff_multiplier must be > 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Return the sleep in seconds after failed *attempt* (indexed from 0)."""
        base = self.initial_delay_s * (self.backoff_multiplier ** max(0, attempt))
        return max(0.0, min(self.max_delay_s, base))


def is_retryable_status(status_code: int) -> bool:
    """Return True for rate-limit and transient server statuses."""
    return status_code in RETRYABLE_STATUS_CODES


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield exc and its causes/contexts, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)


def is_transient_network_error(exc: BaseException) -> bool:
    """Return True when *exc* means no response was received at all."""
    for e in _walk_exception_chain(exc):
        if isinstance(e, TimeoutError):
            return True
        # RequestError is a stable base class for transport-level failures.
        if isinstance(e, (httpx.TimeoutException, httpx.RequestError)):
            return True
    return False
