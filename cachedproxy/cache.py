from abc import ABC, abstractmethod
import logging
import os
from pathlib import Path
import tempfile
from typing import List, Optional

from .codec import decode_headers, encode_headers
from .errors import CacheMiss, CacheWriteFailure, MalformedCacheHeader
from .keys import FlatKeyStrategy, KeyStrategy
from .model import CachedResponse, CacheLocation, Headers


logger = logging.getLogger(__name__)


class Cache(ABC):
    """
    An abstraction of the "last known good" response store.

    The cache remembers the most recent successful response for a key so that
    it can be served when the upstream is unavailable. It deliberately has no
    notion of freshness: entries are overwritten by newer responses and never
    expire or get deleted.
    """

    @abstractmethod
    def read(self, key: str) -> CachedResponse:
        """
        Retrieve the cached response for `key`.

        @param key
          The cache key, usually the request path.
        @return
          The cached body, with the cached headers if they could be recovered.
        @throws CacheMiss
          If there is no usable cached body for `key`.
        """

    @abstractmethod
    def write(self, key: str, body: bytes, headers: Headers) -> None:
        """
        Replace the cached response for `key`.

        @param key
          The cache key, usually the request path.
        @param body
          The response payload.
        @param headers
          The response headers.
        @throws CacheWriteFailure
          If any part of the entry could not be written. Parts that could be
          written are kept.
        """


class FileCache(Cache):
    """
    Stores each entry as two files under a root directory: the raw body, and a
    JSON sidecar with the headers.

    There is no locking. Each file is replaced atomically, but the pair is not,
    so a concurrent reader may see a new body with old headers. Since headers
    are optional on read, such a torn entry is still servable.
    """

    def __init__(self, directory: Path, key_strategy: Optional[KeyStrategy] = None) -> None:
        """
        @param directory
          The path to the root directory of the cache.
        @param key_strategy
          How keys are mapped to file names. Defaults to `FlatKeyStrategy`.
        """
        self.__directory = Path(directory)
        self.__key_strategy = key_strategy or FlatKeyStrategy()

    def locate(self, key: str) -> CacheLocation:
        relative = self.__key_strategy.locations(key)
        return CacheLocation(body=self.__directory / relative.body,
                             header=self.__directory / relative.header)

    def read(self, key: str) -> CachedResponse:
        location = self.locate(key)
        try:
            body = location.body.read_bytes()
        except FileNotFoundError:
            raise CacheMiss(key, location.body)
        except (OSError, ValueError) as e:
            logger.warning('Could not read cached body {}: {}'.format(location.body, e))
            raise CacheMiss(key, location.body) from e

        return CachedResponse(body=body, headers=self._read_headers(location.header))

    def _read_headers(self, path: Path) -> Optional[Headers]:
        try:
            return decode_headers(path.read_bytes())
        except FileNotFoundError:
            logger.info('No cached headers at {}'.format(path))
        except MalformedCacheHeader as e:
            logger.warning('Ignoring malformed cached headers at {}: {}'.format(path, e))
        except (OSError, ValueError) as e:
            logger.warning('Could not read cached headers {}: {}'.format(path, e))
        return None

    def write(self, key: str, body: bytes, headers: Headers) -> None:
        location = self.locate(key)
        failures: List[str] = []

        for path, content in ((location.body, body), (location.header, encode_headers(headers))):
            logger.info('cache write: {}'.format(path))
            try:
                self._write_file(path, content)
            except (OSError, ValueError) as e:
                failures.append('{}: {}'.format(path, e))

        if failures:
            raise CacheWriteFailure(key, failures)

    def _write_file(self, path: Path, content: bytes) -> None:
        """
        Write `content` to a temporary file next to `path`, then move it into place.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = tempfile.NamedTemporaryFile(mode='wb', dir=str(path.parent), prefix='.', suffix='.tmp',
                                                delete=False)
        try:
            with temp_file:
                temp_file.write(content)
            os.replace(temp_file.name, str(path))
        except BaseException:
            Path(temp_file.name).unlink()
            raise
