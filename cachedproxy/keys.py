"""
Derivation of cache file locations from request paths.

Locations are relative to the cache root. The flat strategy keeps the files
human readable (`/v1/items` is stored as `v1-items.json`), while the hashed
strategy trades readability for file names of a fixed length.
"""

from abc import ABC, abstractmethod
import hashlib
from pathlib import Path
from typing import Optional

from .model import CacheLocation
from .util import split_path


BODY_SUFFIX = '.json'
HEADER_SUFFIX = '.header'
SEPARATOR = '-'


def cache_key(path: str, method: Optional[str] = None) -> str:
    """
    The key under which a response for `path` is cached.

    All methods share one entry per path, unless `method` is given. Methods
    never contain a slash, so prefixing the method as an extra path segment
    cannot collide with another method's key.
    """
    if method is None:
        return path
    return '/{}{}'.format(method.upper(), path)


class KeyStrategy(ABC):
    @abstractmethod
    def name_for(self, key: str) -> str:
        """
        The location of the entry for `key` relative to the cache root, without any suffix.
        """

    def locations(self, key: str) -> CacheLocation:
        name = self.name_for(key)
        return CacheLocation(body=Path(name + BODY_SUFFIX), header=Path(name + HEADER_SUFFIX))


class FlatKeyStrategy(KeyStrategy):
    """
    Stores every entry directly in the cache root.

    The leading slash is stripped and the remaining slashes become `-`. Any `%`
    and `-` already in the path are percent-escaped first, so `/a-b` and `/a/b`
    do not share an entry.
    """

    def name_for(self, key: str) -> str:
        escaped = key.replace('%', '%25').replace(SEPARATOR, '%2D')
        if escaped.startswith('/'):
            escaped = escaped[1:]
        return escaped.replace('/', SEPARATOR)


class HashedKeyStrategy(KeyStrategy):
    def __init__(self, directory_levels: int = 2) -> None:
        """
        @param directory_levels
          The number of subdirectory levels to spread entries over.
        """
        self.__directory_levels = directory_levels

    def name_for(self, key: str) -> str:
        hashed = hashlib.sha256(key.encode('utf-8', 'surrogateescape')).hexdigest()
        return str(split_path(hashed, self.__directory_levels))


STRATEGIES = {
    'flat': FlatKeyStrategy,
    'hashed': HashedKeyStrategy,
}


def create_strategy(name: str) -> KeyStrategy:
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError('Unknown cache key strategy {!r}. Choose one of: {}'.format(
            name, ', '.join(sorted(STRATEGIES))))
