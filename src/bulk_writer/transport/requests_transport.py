"""Bulk transport using the `requests` library.

Sends each batch as one blocking POST on a shared `requests.Session`, so
connections are pooled across flushes of the same writer.
"""

from __future__ import annotations

import logging

import requests

from bulk_writer.exceptions import TransportError
from bulk_writer.transport.base import Transport
from bulk_writer.transport.models import NDJSON_CONTENT_TYPE, TransportConfig

logger = logging.getLogger(__name__)


class RequestsTransport(Transport):
    """Blocking bulk transport over a `requests.Session`.

    Attributes:
        config: Connection settings.

    Example:
        >>> transport = RequestsTransport(TransportConfig(base_url="http://es:9200"))
        >>> payload = b'{"index":{}}\\n{"a":1}\\n'
        >>> transport.bulk("logs", payload, len(payload))
        >>> transport.close()
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            config: Connection settings (default: TransportConfig()).
            session: Optional pre-built session, used as given. TLS
                verification and credentials from `config` only apply to
                the session created when this is omitted.
        """
        self._config = config or TransportConfig()
        if session is None:
            session = requests.Session()
            session.verify = self._config.verify
            if self._config.auth is not None:
                session.auth = self._config.auth
        self._session = session
        self._closed = False

    @property
    def config(self) -> TransportConfig:
        """Connection settings used by this transport."""
        return self._config

    def bulk(self, target: str, payload: bytes | memoryview, length: int) -> None:
        """Send ``payload[:length]`` to the target's ``_bulk`` endpoint.

        Raises:
            TransportError: On connection failure, timeout or non-2xx status.
        """
        body = bytes(payload[:length])
        self._post(self._config.bulk_url(target), body, operation="bulk")

    def refresh(self, target: str) -> None:
        """Call the target's ``_refresh`` endpoint.

        Raises:
            TransportError: On connection failure, timeout or non-2xx status.
        """
        self._post(self._config.refresh_url(target), None, operation="refresh")

    def close(self) -> None:
        """Close the underlying session. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._session.close()

    def _post(self, url: str, body: bytes | None, operation: str) -> None:
        if self._closed:
            raise TransportError(f"Cannot {operation}: transport is closed")

        logger.debug("POST %s (%d bytes)", url, len(body) if body else 0)
        try:
            response = self._session.post(
                url,
                data=body,
                headers={"Content-Type": NDJSON_CONTENT_TYPE},
                timeout=self._config.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            raise TransportError(f"HTTP Error on {operation}: {e}", status_code) from e
        except requests.Timeout as e:
            raise TransportError(f"Timeout on {operation} to {url}") from e
        except requests.ConnectionError as e:
            raise TransportError(f"Connection Error on {operation} to {url}") from e
        except requests.RequestException as e:
            raise TransportError(f"Request Error on {operation}: {e}") from e
