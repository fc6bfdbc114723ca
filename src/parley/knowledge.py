"""Knowledge links: web pages folded into the conversation as context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

from parley._http import body_fragment
from parley.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class KnowledgeFetcher(Protocol):
    """Anything that turns a URL into text."""

    def fetch(self, url: str) -> str:
        """Return the text content behind *url*."""
        ...


class HttpKnowledgeFetcher:
    """Fetch pages over HTTP, optionally converting them (e.g. HTML to Markdown).

    The converter is an external collaborator; without one the body is used
    as-is.
    """

    def __init__(
        self,
        *,
        client: httpx.Client | None = None,
        converter: Callable[[str], str] | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout_s, follow_redirects=True)
        self._converter = converter

    def fetch(self, url: str) -> str:
        """Return the (converted) body at *url*.

        Raises:
            TransportError: The page could not be retrieved.
        """
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Failed to fetch knowledge link {url}: {e}", attempts=1
            ) from e
        if response.status_code != 200:
            raise TransportError(
                f"Failed to fetch knowledge link {url} (status={response.status_code})",
                attempts=1,
                status_code=response.status_code,
                body=body_fragment(response.text),
            )
        text = response.text
        logger.debug("Fetched knowledge link %s (%d chars)", url, len(text))
        return self._converter(text) if self._converter is not None else text

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
