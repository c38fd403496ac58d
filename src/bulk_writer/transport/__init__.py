"""Transports that carry bulk requests to the document store."""

from bulk_writer.transport.base import Transport
from bulk_writer.transport.httpx_transport import HttpxTransport
from bulk_writer.transport.models import TransportConfig
from bulk_writer.transport.requests_transport import RequestsTransport

__all__ = [
    "HttpxTransport",
    "RequestsTransport",
    "Transport",
    "TransportConfig",
]
