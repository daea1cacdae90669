import logging
from typing import Dict, List, Optional

import requests
from urllib3 import HTTPHeaderDict

from .errors import RequestConstructionError, UpstreamTransportError
from .model import Headers, InboundRequest, UpstreamResponse


logger = logging.getLogger(__name__)

# The body of these is omitted altogether rather than sent empty.
BODYLESS_METHODS = {'GET', 'HEAD'}

# Describe the inbound connection rather than the request, so the client recomputes them.
RECOMPUTED_HEADERS = {'host', 'content-length', 'transfer-encoding'}

DEFAULT_TIMEOUT = 30.0


def target_url(upstream_host: str, path: str, query: str = '') -> str:
    """
    Join the upstream host and an inbound path into the URL to forward to.

    The path is appended rather than joined with a path-joining function, which
    would squash the `//` following the scheme. The query string is appended
    verbatim, and only when there is one.
    """
    url = upstream_host.rstrip('/') + '/' + path.lstrip('/')
    if query:
        url += '?' + query
    return url


def response_headers(response: requests.Response) -> Headers:
    """
    Collect the headers of `response`, keeping repeated headers apart.

    `requests` folds repeated headers into a single comma separated value, so
    the underlying urllib3 response is preferred when it is available.
    """
    raw_headers = getattr(response.raw, 'headers', None)
    if isinstance(raw_headers, HTTPHeaderDict):
        return {name: raw_headers.getlist(name) for name in raw_headers}
    return {name: [value] for name, value in response.headers.items()}


class Forwarder:
    def __init__(self, upstream_host: str, timeout: Optional[float] = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None) -> None:
        """
        @param upstream_host
          The scheme and host to forward to, e.g. "http://backend:8000". It may
          include a base path.
        @param timeout
          Seconds to wait for the upstream to connect and to send data. `None`
          waits forever.
        @param session
          The session to send requests with. A new one is created by default.
        """
        self.__upstream_host = upstream_host
        self.__timeout = timeout
        self.__session = session or requests.Session()

    def build(self, inbound: InboundRequest) -> requests.PreparedRequest:
        """
        Build the upstream counterpart of `inbound`.

        @throws RequestConstructionError
          If the target URL or one of the headers is invalid.
        """
        url = target_url(self.__upstream_host, inbound.path, inbound.query)
        body = None if inbound.method.upper() in BODYLESS_METHODS else (inbound.body or b'')

        names: Dict[str, str] = {}
        values: Dict[str, List[str]] = {}
        for name, header_values in inbound.headers.items():
            if name.lower() in RECOMPUTED_HEADERS:
                continue
            names.setdefault(name.lower(), name)
            values.setdefault(name.lower(), []).extend(header_values)

        # `requests` validates a single value per name. Validate the folded form
        # here, and put the individual values back once it is prepared.
        folded = {names[key]: ', '.join(header_values) for key, header_values in values.items()}
        try:
            prepared = self.__session.prepare_request(
                requests.Request(method=inbound.method, url=url, headers=folded, data=body))
        except (requests.exceptions.RequestException, ValueError) as e:
            raise RequestConstructionError(str(e)) from e

        headers = HTTPHeaderDict()
        for name, value in prepared.headers.items():
            for original in values.get(name.lower(), [value]):
                headers.add(name, original)
        prepared.headers = headers
        return prepared

    def send(self, prepared: requests.PreparedRequest) -> UpstreamResponse:
        """
        Send a request built by `build()` and read the full response.

        @throws UpstreamTransportError
          If the upstream could not be reached or the response could not be read.
        """
        logger.info('[{}] {}'.format(prepared.method, prepared.url))
        try:
            response = self.__session.send(prepared, timeout=self.__timeout)
            body = response.content
        except requests.exceptions.RequestException as e:
            raise UpstreamTransportError(prepared.url, str(e)) from e

        return UpstreamResponse(status=response.status_code,
                                reason=response.reason,
                                headers=response_headers(response),
                                body=body)
