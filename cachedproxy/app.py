import logging
from typing import Dict, List, Optional
from urllib.parse import quote

from flask import Flask, Request, Response, request
from werkzeug.routing import Rule

from .cache import FileCache
from .config import ProxyConfig
from .forwarder import BODYLESS_METHODS, Forwarder
from .keys import create_strategy
from .model import InboundRequest
from .proxy import FallbackCoordinator


logger = logging.getLogger(__name__)

# Characters left alone when re-encoding. Anything else, including `%`, `?` and
# `#` that arrived percent-encoded, is encoded again.
PATH_SAFE = "/:@!$&'()*+,;=-._~"
QUERY_SAFE = "/?:@!$&'()*+,;=-._~%[]"


def create_coordinator(config: ProxyConfig) -> FallbackCoordinator:
    return FallbackCoordinator(
        forwarder=Forwarder(config.upstream_host, timeout=config.timeout),
        cache=FileCache(config.cache_path, create_strategy(config.key_strategy)),
        cache_write=config.cache_write,
        key_by_method=config.key_by_method,
        logger=logging.getLogger('cachedproxy'),
    )


def inbound_request(flask_request: Request) -> InboundRequest:
    headers: Dict[str, List[str]] = {}
    for name, value in flask_request.headers.items():
        headers.setdefault(name, []).append(value)

    body = None
    if flask_request.method not in BODYLESS_METHODS:
        body = flask_request.get_data(cache=False)

    # Werkzeug hands over the path decoded; the query string is the raw bytes.
    return InboundRequest(method=flask_request.method,
                          path=quote(flask_request.path, safe=PATH_SAFE),
                          query=quote(flask_request.query_string, safe=QUERY_SAFE),
                          headers=headers,
                          body=body)


def create_app(config: ProxyConfig, coordinator: Optional[FallbackCoordinator] = None) -> Flask:
    """
    Build the proxy application.

    Every method on every path goes to the same handler. The rules are added
    to the URL map directly because a werkzeug `Rule` without `methods`
    matches any method, extension methods such as PROPFIND included, whereas
    `Flask.route` always restricts them.

    @param config
      The proxy settings.
    @param coordinator
      The request pipeline to use. Built from `config` by default.
    """
    app = Flask(__name__, static_folder=None)
    coordinator = coordinator or create_coordinator(config)

    def proxy(path):
        outcome = coordinator.handle(inbound_request(request))
        logger.debug('[{}] {} ended in state {}'.format(request.method, request.path, outcome.state.value))

        response = Response(outcome.response.body, status=outcome.response.status,
                            headers=outcome.response.headers)
        if outcome.write_through is not None:
            # Runs once the body has been handed to the server.
            response.call_on_close(outcome.write_through)
        return response

    app.url_map.add(Rule('/', defaults={'path': ''}, endpoint='proxy', merge_slashes=False))
    app.url_map.add(Rule('/<path:path>', endpoint='proxy', merge_slashes=False))
    app.view_functions['proxy'] = proxy

    return app
