from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Optional, Tuple

from .forwarder import DEFAULT_TIMEOUT


logger = logging.getLogger(__name__)


@dataclass
class ProxyConfig:
    upstream_host: str
    """
    The scheme and host every request is forwarded to. E.g., "https://api.example.com".
    """

    listen: str = 'localhost:8080'
    """
    The `host:port` to accept requests on.
    """

    cache_path: Path = Path('data')
    """
    The root directory of the cache. Created at startup if missing.
    """

    cache_write: bool = True
    """
    Whether successful responses are cached. When false the cache is read-only.
    """

    timeout: Optional[float] = DEFAULT_TIMEOUT
    """
    Seconds to wait on the upstream before falling back. `None` waits forever.
    """

    key_strategy: str = 'flat'
    """
    How request paths map to cache file names: "flat" or "hashed".
    """

    key_by_method: bool = False
    """
    Whether requests with different methods get separate cache entries.
    """


def parse_listen(listen: str) -> Tuple[str, int]:
    """
    Split a `host:port` listen address.

    @throws ValueError
      If there is no port, or the port is not a number between 0 and 65535.
    """
    host, separator, port = listen.rpartition(':')
    if not separator or not port.isdigit() or not 0 <= int(port) <= 65535:
        raise ValueError('Expected host:port, got {!r}'.format(listen))
    # Bracketed IPv6 literals, e.g. "[::1]:8080".
    return host.strip('[]') or 'localhost', int(port)


def ensure_cache_directory(path: Path) -> Path:
    """
    Create the cache root if it does not exist yet.

    @return
      The absolute path to the cache root.
    @throws OSError
      If the directory cannot be created.
    """
    path = Path(path).resolve()
    if not path.is_dir():
        logger.info('Creating cache directory {}'.format(path))
        path.mkdir(mode=0o755, parents=True, exist_ok=True)
    return path
