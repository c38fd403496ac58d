"""Bulk transport using `httpx.Client`.

Same contract as RequestsTransport, on httpx's synchronous client. An
existing client may be injected, which also lets tests mount an
`httpx.MockTransport`.
"""

from __future__ import annotations

import logging

import httpx

from bulk_writer.exceptions import TransportError
from bulk_writer.transport.base import Transport
from bulk_writer.transport.models import NDJSON_CONTENT_TYPE, TransportConfig

logger = logging.getLogger(__name__)


class HttpxTransport(Transport):
    """Blocking bulk transport over a shared `httpx.Client`.

    Example:
        ```python
        with BulkWriter(config, HttpxTransport(TransportConfig(timeout=10.0))) as writer:
            writer.dispatch(record)
        ```
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Connection settings (default: TransportConfig()).
            client: Optional pre-built client. When omitted a client is
                created from `config`.
        """
        self._config = config or TransportConfig()
        self._client = client or httpx.Client(
            timeout=self._config.timeout,
            verify=self._config.verify,
            auth=self._config.auth,
        )
        self._closed = False

    @property
    def config(self) -> TransportConfig:
        """Connection settings used by this transport."""
        return self._config

    def bulk(self, target: str, payload: bytes | memoryview, length: int) -> None:
        """Send ``payload[:length]`` to the target's ``_bulk`` endpoint."""
        self._post(self._config.bulk_url(target), bytes(payload[:length]), operation="bulk")

    def refresh(self, target: str) -> None:
        """Call the target's ``_refresh`` endpoint."""
        self._post(self._config.refresh_url(target), b"", operation="refresh")

    def close(self) -> None:
        """Close the underlying client. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._client.close()

    def _post(self, url: str, body: bytes, operation: str) -> None:
        if self._closed:
            raise TransportError(f"Cannot {operation}: transport is closed")

        logger.debug("POST %s (%d bytes)", url, len(body))
        try:
            response = self._client.post(
                url,
                content=body,
                headers={"Content-Type": NDJSON_CONTENT_TYPE},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"HTTP Error on {operation}: {e}", e.response.status_code
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout on {operation} to {url}") from e
        except httpx.TransportError as e:
            raise TransportError(f"Connection Error on {operation} to {url}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request Error on {operation}: {e}") from e
