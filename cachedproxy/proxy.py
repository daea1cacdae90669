"""
The request pipeline: forward to the upstream, fall back to the cache.

The cache only ever stands in for an unavailable upstream. A reachable upstream
is always used and always refreshes the cache, so what gets served on failure
is the last response known to be good.
"""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Callable, List, Optional, Tuple

from .cache import Cache
from .errors import CacheMiss, CacheWriteFailure, RequestConstructionError, UpstreamTransportError
from .forwarder import Forwarder
from .keys import cache_key
from .model import CachedResponse, InboundRequest, ProxyResponse, UpstreamResponse


module_logger = logging.getLogger(__name__)

CACHE_INDICATOR = ('x-src', 'from cached-proxy')

# Hop-by-hop headers (RFC 7230 section 6.1) only applied to the original
# connection. The cached body is stored decoded, so the framing headers no
# longer describe it either.
UNREPLAYABLE_HEADERS = {
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization', 'te',
    'trailer', 'trailers', 'transfer-encoding', 'upgrade',
    'content-length', 'content-encoding',
}


class State(Enum):
    """
    The states a handled request can end in.
    """

    SUCCESS = 'success'
    SERVED_FROM_CACHE = 'served from cache'
    CACHE_MISS_ERROR = 'cache miss error'
    REQUEST_CONSTRUCTION_ERROR = 'request construction error'


@dataclass
class Outcome:
    """
    The result of handling one request.
    """

    state: State
    """
    The terminal state the request ended in.
    """

    response: ProxyResponse
    """
    What to send to the client.
    """

    write_through: Optional[Callable[[], None]] = None
    """
    The cache update to run once the response has been sent, if any.
    """


class FallbackCoordinator:
    def __init__(self, forwarder: Forwarder, cache: Cache, cache_write: bool = True,
                 key_by_method: bool = False, logger: Optional[logging.Logger] = None) -> None:
        """
        @param forwarder
          Builds and sends the upstream requests.
        @param cache
          Where successful responses are kept, and fallbacks are read from.
        @param cache_write
          Whether successful responses update the cache. When disabled the
          cache is only read.
        @param key_by_method
          Whether each method gets its own cache entry per path.
        @param logger
          Where operational events are reported.
        """
        self.__forwarder = forwarder
        self.__cache = cache
        self.__cache_write = cache_write
        self.__key_by_method = key_by_method
        self.__logger = logger if logger is not None else module_logger

    def key_for(self, request: InboundRequest) -> str:
        return cache_key(request.path, request.method if self.__key_by_method else None)

    def handle(self, request: InboundRequest) -> Outcome:
        try:
            prepared = self.__forwarder.build(request)
        except RequestConstructionError as e:
            self.__logger.error('Could not build upstream request for [{}] {}: {}'.format(
                request.method, request.path, e))
            return Outcome(State.REQUEST_CONSTRUCTION_ERROR, server_error(str(e)))

        try:
            upstream = self.__forwarder.send(prepared)
        except UpstreamTransportError as e:
            return self._fall_back(request, e)

        return Outcome(State.SUCCESS, live_response(upstream), self._write_through(request, upstream))

    def _fall_back(self, request: InboundRequest, error: UpstreamTransportError) -> Outcome:
        self.__logger.warning('Upstream request to {} failed: {}'.format(error.url, error))
        try:
            cached = self.__cache.read(self.key_for(request))
        except CacheMiss:
            self.__logger.info('Nothing cached for path {!r}, returning the upstream error'.format(request.path))
            return Outcome(State.CACHE_MISS_ERROR, server_error(str(error)))

        self.__logger.info('return cached data for path {!r}'.format(request.path))
        return Outcome(State.SERVED_FROM_CACHE, cached_response(cached))

    def _write_through(self, request: InboundRequest,
                       upstream: UpstreamResponse) -> Optional[Callable[[], None]]:
        if not self.__cache_write:
            return None
        key = self.key_for(request)

        def write() -> None:
            try:
                self.__cache.write(key, upstream.body, upstream.headers)
            except CacheWriteFailure as e:
                self.__logger.error('caching IO failure {}'.format(e))

        return write


def server_error(message: str) -> ProxyResponse:
    return ProxyResponse(status=500,
                         body=message.encode('utf-8'),
                         headers=[('Content-Type', 'text/plain; charset=utf-8')])


def live_response(upstream: UpstreamResponse) -> ProxyResponse:
    """
    The client's view of a live upstream response.

    Only the body and its content type are relayed; the status is left at the
    server's default.
    """
    headers: List[Tuple[str, str]] = []
    for name, values in upstream.headers.items():
        if name.lower() == 'content-type':
            headers.extend((name, value) for value in values[-1:])
    return ProxyResponse(status=200, body=upstream.body, headers=headers)


def cached_response(cached: CachedResponse) -> ProxyResponse:
    cached_headers = cached.headers or {}

    # Headers listed in `Connection` are hop-by-hop too.
    dropped = set(UNREPLAYABLE_HEADERS)
    for name, values in cached_headers.items():
        if name.lower() == 'connection':
            dropped.update(token.strip().lower() for value in values for token in value.split(','))

    headers = [CACHE_INDICATOR]
    for name, values in cached_headers.items():
        if name.lower() in dropped:
            continue
        headers.extend((name, value) for value in values)
    return ProxyResponse(status=200, body=cached.body, headers=headers)
