"""Provider protocol: the adapter seam between the engine and a vendor API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from parley.chat import ConversationState
    from parley.config import ProviderName
    from parley.providers.models import GenerationConfig, ProviderTurnResult
    from parley.transport import Endpoint


@runtime_checkable
class ProviderAdapter(Protocol):
    """Translate conversation state to one vendor's wire format and back."""

    name: ProviderName

    def endpoint(self, model: str) -> Endpoint:
        """Return the endpoint for *model*."""
        ...

    def build_request(
        self,
        state: ConversationState,
        settings: GenerationConfig,
        *,
        first_call: bool,
    ) -> dict[str, Any]:
        """Serialize history, tools and settings into a request body."""
        ...

    def interpret_response(self, raw: dict[str, Any]) -> ProviderTurnResult:
        """Normalize a response body into text, tool calls or termination.

        Raises:
            StructuralResponseError: Neither text nor tool calls were found.
        """
        ...

    def file_search_results(self, raw: dict[str, Any]) -> list[dict[str, Any]]:
        """Return retrieved file-search chunks, if the response carries any."""
        ...

    def response_id(self, raw: dict[str, Any]) -> str | None:
        """Return the provider continuation handle, if any."""
        ...
