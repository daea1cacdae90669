import logging
from pathlib import Path
import sys
import time
from urllib.parse import urlsplit

import click

from .app import create_app
from .config import ProxyConfig, ensure_cache_directory, parse_listen
from .keys import STRATEGIES


logger = logging.getLogger(__name__)

LOG_FORMAT = '%(levelname)s: %(asctime)s %(name)s %(message)s'


class _BelowLevel(logging.Filter):
    def __init__(self, level: int) -> None:
        super().__init__()
        self.__level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.__level


def configure_logging(level: int = logging.INFO) -> None:
    """
    Send informational records to stdout, and errors to stderr.
    """
    formatter = logging.Formatter(LOG_FORMAT)
    formatter.converter = time.gmtime

    info_handler = logging.StreamHandler(sys.stdout)
    info_handler.setFormatter(formatter)
    info_handler.addFilter(_BelowLevel(logging.ERROR))

    error_handler = logging.StreamHandler(sys.stderr)
    error_handler.setFormatter(formatter)
    error_handler.setLevel(logging.ERROR)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [info_handler, error_handler]


@click.command()
@click.option('--host', 'upstream_host', envvar='CACHEDPROXY_HOST', required=True,
              help='Upstream host to forward to, e.g. http://localhost:9000.')
@click.option('--listen', envvar='CACHEDPROXY_LISTEN', default='localhost:8080', show_default=True,
              help='Address to accept requests on, as host:port.')
@click.option('--cache-path', envvar='CACHEDPROXY_CACHE_PATH', default='data', show_default=True,
              type=click.Path(file_okay=False, path_type=Path), help='Where to keep cached responses.')
@click.option('--cache-write/--no-cache-write', envvar='CACHEDPROXY_CACHE_WRITE', default=True, show_default=True,
              help='Whether to cache successful responses. Disable to use the cache read-only.')
@click.option('--timeout', envvar='CACHEDPROXY_TIMEOUT', type=click.FloatRange(min=0, min_open=True),
              default=30.0, show_default=True, help='Seconds to wait on the upstream before falling back.')
@click.option('--cache-key', 'key_strategy', envvar='CACHEDPROXY_CACHE_KEY', type=click.Choice(sorted(STRATEGIES)),
              default='flat', show_default=True, help='How request paths are turned into cache file names.')
@click.option('--key-by-method', envvar='CACHEDPROXY_KEY_BY_METHOD', is_flag=True, default=False,
              help='Cache each method separately instead of sharing one entry per path.')
@click.option('--log-level', envvar='CACHEDPROXY_LOG_LEVEL', default='INFO', show_default=True,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False))
def main(upstream_host, listen, cache_path, cache_write, timeout, key_strategy, key_by_method, log_level):
    """
    Forward every request to an upstream host, and answer from the last good
    response when the upstream is unavailable.
    """
    configure_logging(getattr(logging, log_level.upper()))

    parts = urlsplit(upstream_host)
    if not parts.scheme or not parts.netloc:
        raise click.BadParameter('Expected a URL such as http://backend:8000, got {!r}'.format(upstream_host),
                                 param_hint='--host')

    try:
        host, port = parse_listen(listen)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--listen')

    try:
        cache_path = ensure_cache_directory(cache_path)
    except OSError as e:
        logger.error('Could not create cache directory {}: {}'.format(cache_path, e))
        raise click.ClickException('Could not create cache directory {}: {}'.format(cache_path, e))

    config = ProxyConfig(upstream_host=upstream_host,
                         listen=listen,
                         cache_path=cache_path,
                         cache_write=cache_write,
                         timeout=timeout,
                         key_strategy=key_strategy,
                         key_by_method=key_by_method)
    app = create_app(config)

    logger.info('listening on {}, forwarding to {}'.format(listen, upstream_host))
    app.run(host=host, port=port, threaded=True)


if __name__ == '__main__':
    main()
