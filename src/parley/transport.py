"""Resilient call layer: one JSON POST with classification and bounded retries."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from parley._http import body_fragment
from parley.errors import TransportError
from parley.retry import is_retryable_status, is_transient_network_error

if TYPE_CHECKING:
    from collections.abc import Callable

    from parley.config import Config, ProviderName

logger = logging.getLogger(__name__)

# Finish reasons that mean the model ran out of output tokens.
_TRUNCATION_REASONS = frozenset({"max_output_tokens", "MAX_TOKENS"})


@dataclass(frozen=True)
class Endpoint:
    """Where a request goes and which credential family it needs."""

    url: str
    provider: ProviderName
    model: str


@dataclass(frozen=True)
class RawResponse:
    """A parsed, provider-tagged response body."""

    provider: ProviderName
    body: dict[str, Any] = field(default_factory=dict)
    finish_reason: str | None = None
    truncated: bool = False
    attempts: int = 1


def extract_finish_reason(provider: ProviderName, body: dict[str, Any]) -> str | None:
    """Return the provider-specific completion reason from a response body.

    OpenAI-style responses expose ``status`` and, when incomplete, an
    ``incomplete_details.reason`` ("max_output_tokens" or "content_filter").
    The specific reason wins so callers get the actionable root cause.
    Gemini-style responses carry ``finishReason`` on the first candidate.
    """
    if provider == "openai":
        status = body.get("status")
        if not isinstance(status, str):
            return None
        if status == "incomplete":
            details = body.get("incomplete_details")
            reason = details.get("reason") if isinstance(details, dict) else None
            if isinstance(reason, str) and reason:
                return reason
        return status

    candidates = body.get("candidates")
    if isinstance(candidates, list) and candidates:
        first = candidates[0]
        if isinstance(first, dict):
            reason = first.get("finishReason")
            if isinstance(reason, str):
                return reason
    return None


class Transport:
    """Issue provider calls with bounded exponential backoff.

    Non-2xx responses are inspected rather than raised: 429/500/502/503 and
    network failures are retried, every other status aborts immediately.
    """

    def __init__(
        self,
        config: Config,
        *,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Create a transport; an owned ``httpx.Client`` is built when none is given."""
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout_s)
        self._sleep = sleep

    def _headers(self, endpoint: Endpoint) -> dict[str, str]:
        key = self.config.api_key_for(endpoint.provider)
        headers = {"Content-Type": "application/json"}
        if endpoint.provider == "openai":
            headers["Authorization"] = f"Bearer {key}"
        else:
            headers["x-goog-api-key"] = key
        return headers

    def call(self, endpoint: Endpoint, body: dict[str, Any]) -> RawResponse:
        """POST *body* to *endpoint* and return the parsed response.

        Raises:
            ConfigurationError: No credential for the endpoint family.
            TransportError: Non-retryable status or retries exhausted.
        """
        headers = self._headers(endpoint)
        payload = json.dumps(body)
        policy = self.config.retry

        if self.config.verbose:
            logger.info("Request to %s (%s): %s", endpoint.url, endpoint.model, payload)

        last_status: int | None = None
        last_body: str | None = None
        for attempt in range(policy.max_attempts):
            try:
                response = self._client.post(
                    endpoint.url, content=payload, headers=headers
                )
            except httpx.HTTPError as e:
                if not is_transient_network_error(e):
                    raise TransportError(
                        f"{endpoint.provider} request failed: {e}",
                        attempts=attempt + 1,
                        provider=endpoint.provider,
                        model=endpoint.model,
                    ) from e
                logger.warning(
                    "Network error calling %s (attempt %d/%d): %s",
                    endpoint.model,
                    attempt + 1,
                    policy.max_attempts,
                    e,
                )
                last_status, last_body = None, str(e)
                self._backoff(attempt)
                continue

            status = response.status_code
            if status == 200:
                return self._parse_success(endpoint, response, attempts=attempt + 1)

            last_status, last_body = status, body_fragment(response.text)
            if not is_retryable_status(status):
                raise TransportError(
                    f"{endpoint.provider} call to {endpoint.model} failed "
                    f"(status={status}): {last_body}",
                    attempts=attempt + 1,
                    status_code=status,
                    provider=endpoint.provider,
                    model=endpoint.model,
                    body=last_body,
                    hint=_status_hint(endpoint.provider, status),
                )

            logger.warning(
                "Retryable status %d from %s (attempt %d/%d)",
                status,
                endpoint.model,
                attempt + 1,
                policy.max_attempts,
            )
            self._backoff(attempt)

        raise TransportError(
            f"{endpoint.provider} call to {endpoint.model} failed after "
            f"{policy.max_attempts} attempts",
            attempts=policy.max_attempts,
            status_code=last_status,
            provider=endpoint.provider,
            model=endpoint.model,
            body=last_body,
        )

    def _backoff(self, attempt: int) -> None:
        # No sleep after the final attempt.
        if attempt + 1 >= self.config.retry.max_attempts:
            return
        delay = self.config.retry.delay_for(attempt)
        if delay > 0:
            self._sleep(delay)

    def _parse_success(
        self, endpoint: Endpoint, response: httpx.Response, *, attempts: int
    ) -> RawResponse:
        text = response.text
        if self.config.verbose:
            logger.info("Response from %s: %s", endpoint.model, text)
        try:
            body = json.loads(text)
        except json.JSONDecodeError as e:
            raise TransportError(
                f"{endpoint.provider} returned a non-JSON body",
                attempts=attempts,
                status_code=response.status_code,
                provider=endpoint.provider,
                model=endpoint.model,
                body=body_fragment(text),
            ) from e
        if not isinstance(body, dict):
            raise TransportError(
                f"{endpoint.provider} returned a non-object JSON body",
                attempts=attempts,
                status_code=response.status_code,
                provider=endpoint.provider,
                model=endpoint.model,
                body=body_fragment(text),
            )

        finish_reason = extract_finish_reason(endpoint.provider, body)
        truncated = finish_reason in _TRUNCATION_REASONS
        if truncated:
            logger.warning(
                "Response from %s was truncated by the token budget "
                "(finish_reason=%s); consider raising max_output_tokens",
                endpoint.model,
                finish_reason,
            )
        logger.debug(
            "Call to %s succeeded after %d attempt(s) finish_reason=%s",
            endpoint.model,
            attempts,
            finish_reason,
        )
        return RawResponse(
            provider=endpoint.provider,
            body=body,
            finish_reason=finish_reason,
            truncated=truncated,
            attempts=attempts,
        )

    def close(self) -> None:
        """Close the underlying client when this transport created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _status_hint(provider: ProviderName, status_code: int) -> str | None:
    """Generate a hint for auth errors where naming the env var is useful."""
    if status_code in {401, 403}:
        env_var = "OPENAI_API_KEY" if provider == "openai" else "GEMINI_API_KEY"
        return f"Check credentials/permissions (try setting {env_var})."
    if status_code == 404:
        return "Check the model name and base URL."
    return None
