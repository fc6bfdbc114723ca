"""Exception hierarchy for Parley."""

from __future__ import annotations


class ParleyError(Exception):
    """Base exception for all Parley errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ParleyError):
    """Configuration validation or resolution failed.

    Raised before any network call is attempted.
    """


class APIError(ParleyError):
    """A provider API call failed.

    Carries enough context (model, attempts, status, body fragment) to
    diagnose the failure without retrying blindly.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        provider: str | None = None,
        model: str | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.provider = provider
        self.model = model
        self.body = body


class TransportError(APIError):
    """Retries were exhausted or the endpoint answered with a terminal status."""

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        hint: str | None = None,
        status_code: int | None = None,
        provider: str | None = None,
        model: str | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(
            message,
            hint=hint,
            status_code=status_code,
            provider=provider,
            model=model,
            body=body,
        )
        self.attempts = attempts


class StructuralResponseError(APIError):
    """A provider response matched neither the text nor the tool-call shape."""


class ToolNotFoundError(ParleyError):
    """No tool (or no callable) is registered under the requested name."""

    def __init__(self, name: str, *, hint: str | None = None) -> None:
        super().__init__(f"Tool not found: {name!r}", hint=hint)
        self.name = name


class BudgetExceededError(ParleyError):
    """The session issued more model calls than its call budget allows."""

    def __init__(self, call_count: int, call_budget: int) -> None:
        super().__init__(
            f"Call budget exceeded: {call_count} calls made, budget is {call_budget}",
            hint="Raise Chat(call_budget=...) or start a new session.",
        )
        self.call_count = call_count
        self.call_budget = call_budget
