"""Configuration for HTTP transports."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Self

from bulk_writer.settings import lookup, parse_bool, parse_float

NDJSON_CONTENT_TYPE = "application/x-ndjson"
DEFAULT_BASE_URL = "http://localhost:9200"


@dataclass(frozen=True, slots=True)
class TransportConfig:
    """Connection settings shared by all HTTP transports.

    Attributes:
        base_url: Root URL of the document store (default: http://localhost:9200).
        timeout: Request timeout in seconds (default: 30.0).
        verify: Verify TLS certificates (default: True).
        username: Optional basic-auth user.
        password: Optional basic-auth password.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    verify: bool = True
    username: str | None = None
    password: str | None = None

    @property
    def auth(self) -> tuple[str, str] | None:
        """Basic-auth credentials, or None when no user is configured."""
        if self.username is None:
            return None
        return (self.username, self.password or "")

    def bulk_url(self, target: str) -> str:
        """URL of the bulk endpoint for `target`."""
        return f"{self.base_url.rstrip('/')}/{target}/_bulk"

    def refresh_url(self, target: str) -> str:
        """URL of the refresh endpoint for `target`."""
        return f"{self.base_url.rstrip('/')}/{target}/_refresh"

    @classmethod
    def from_settings(cls, settings: Mapping[str, str]) -> Self:
        """Build a config from connector-style ``es.*`` settings.

        Reads ``es.nodes`` (default ``localhost``), ``es.port`` (default
        ``9200``), ``es.net.ssl``, ``es.net.http.auth.user`` and
        ``es.net.http.auth.pass``.
        """
        host = lookup(settings, "es.nodes", "localhost") or "localhost"
        port = lookup(settings, "es.port", "9200")
        ssl = parse_bool(lookup(settings, "es.net.ssl", "false") or "false", "es.net.ssl")
        if "://" not in host:
            host = f"{'https' if ssl else 'http'}://{host}"
        timeout = lookup(settings, "es.http.timeout")
        return cls(
            base_url=f"{host}:{port}",
            timeout=parse_float(timeout, "es.http.timeout") if timeout else 30.0,
            username=lookup(settings, "es.net.http.auth.user"),
            password=lookup(settings, "es.net.http.auth.pass"),
        )

    @classmethod
    def from_env(cls, prefix: str = "BULK_WRITER_") -> Self:
        """Build a config from ``BULK_WRITER_URL`` and friends."""
        timeout = lookup(os.environ, f"{prefix}TIMEOUT")
        verify = lookup(os.environ, f"{prefix}VERIFY")
        return cls(
            base_url=lookup(os.environ, f"{prefix}URL", DEFAULT_BASE_URL) or DEFAULT_BASE_URL,
            timeout=parse_float(timeout, f"{prefix}TIMEOUT") if timeout else 30.0,
            verify=parse_bool(verify, f"{prefix}VERIFY") if verify else True,
            username=lookup(os.environ, f"{prefix}USERNAME"),
            password=lookup(os.environ, f"{prefix}PASSWORD"),
        )
