from pathlib import Path
from typing import Sequence


class CachedProxyError(Exception):
    """
    Base class for every error raised while proxying a request.
    """


class RequestConstructionError(CachedProxyError):
    """
    The outbound request could not be built from the inbound one.
    """


class UpstreamTransportError(CachedProxyError):
    """
    The upstream host could not be reached, or did not deliver a full response.

    Connection refusals, DNS failures, timeouts and TLS failures all end up
    here. The distinction does not matter for the fallback.
    """

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(reason)
        self.__url = url

    @property
    def url(self) -> str:
        return self.__url


class CacheMiss(CachedProxyError):
    """
    There is no usable cached body for the requested key.
    """

    def __init__(self, key: str, path: Path) -> None:
        super().__init__('No cached body for {} at {}'.format(key, path))
        self.__key = key
        self.__path = path

    @property
    def key(self) -> str:
        return self.__key

    @property
    def path(self) -> Path:
        return self.__path


class MalformedCacheHeader(CachedProxyError):
    """
    A header artifact could not be decoded.
    """


class CacheWriteFailure(CachedProxyError):
    """
    One or both artifacts of a cache entry could not be written.

    The artifacts are written independently, so any of them not listed in
    `failures` was written successfully.
    """

    def __init__(self, key: str, failures: Sequence[str]) -> None:
        super().__init__('Could not cache {}: {}'.format(key, '; '.join(failures)))
        self.__key = key
        self.__failures = tuple(failures)

    @property
    def key(self) -> str:
        return self.__key

    @property
    def failures(self) -> Sequence[str]:
        return self.__failures
