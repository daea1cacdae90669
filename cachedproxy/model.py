"""
Defines the types that flow through the proxy.

These types are as simple as possible so that the HTTP layers on either side
(the inbound server and the upstream client) can be converted to and from them
without dragging their own request and response classes into the core.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Tuple


Headers = Mapping[str, List[str]]
"""
A header collection. Each header name maps to its values in the order they
were received, so repeated headers survive a round trip.
"""


@dataclass
class InboundRequest:
    """
    A request received by the proxy, stripped down to what is forwarded.
    """

    method: str
    """
    The HTTP method of the request. E.g., "GET".
    """

    path: str
    """
    The request path, always starting with a slash. It is percent-encoded as it
    is sent upstream.
    """

    query: str = ''
    """
    The raw query string, without the leading "?". Empty when absent.
    """

    headers: Headers = field(default_factory=dict)
    """
    All the headers sent with the request.
    """

    body: Optional[bytes] = field(default=None, compare=False)
    """
    The request payload. `None` for methods that do not carry a body.
    """


@dataclass
class UpstreamResponse:
    """
    A fully buffered response received from the upstream host.
    """

    status: int
    """
    The status code of the response. E.g., 200 or 400.
    """

    reason: str
    """
    The reason string, which relates to the status code.
    """

    headers: Headers
    """
    All the headers sent with the response.
    """

    body: bytes = field(compare=False)
    """
    The response payload, already decoded by the HTTP client.
    """


@dataclass
class CachedResponse:
    """
    A response recovered from the cache.

    The body is mandatory, while the headers are optional: a missing or
    unreadable header artifact still leaves a usable cached response.
    """

    body: bytes
    headers: Optional[Headers] = None


@dataclass(frozen=True)
class CacheLocation:
    """
    The pair of files that make up a cache entry, relative to the cache root.
    """

    body: Path
    header: Path


@dataclass
class ProxyResponse:
    """
    The response handed back to the client.
    """

    status: int
    body: bytes
    headers: List[Tuple[str, str]] = field(default_factory=list)
