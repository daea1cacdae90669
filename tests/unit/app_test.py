from ddt import ddt, data, unpack
import json
from mockito import unstub, when
from pathlib import Path
import requests
from requests.structures import CaseInsensitiveDict
from tempfile import TemporaryDirectory
from unittest import TestCase

from cachedproxy.app import create_app, create_coordinator
from cachedproxy.cache import FileCache
from cachedproxy.config import ProxyConfig
from cachedproxy.forwarder import Forwarder
from cachedproxy.model import InboundRequest
from cachedproxy.proxy import FallbackCoordinator


def make_response(headers=None, body=b''):
    response = requests.Response()
    response.status_code = 200
    response.reason = 'OK'
    response.headers = CaseInsensitiveDict(headers or {})
    response._content = body
    return response


@ddt
class TestApp(TestCase):
    def setUp(self):
        self.__temp = TemporaryDirectory()
        self.directory = Path(self.__temp.name)
        self.session = requests.Session()
        self.sent = []
        self.config = ProxyConfig(upstream_host='http://upstream:9000', cache_path=self.directory)
        self.client = self.make_client(self.config)

    def tearDown(self):
        unstub()
        self.__temp.cleanup()

    def make_client(self, config: ProxyConfig):
        coordinator = FallbackCoordinator(Forwarder(config.upstream_host, session=self.session),
                                          FileCache(config.cache_path),
                                          cache_write=config.cache_write)
        return create_app(config, coordinator).test_client()

    def upstream_returns(self, response):
        def answer(prepared, **kw):
            self.sent.append(prepared)
            return response
        when(self.session).send(...).thenAnswer(answer)

    def upstream_fails(self, message='Connection refused'):
        def answer(prepared, **kw):
            self.sent.append(prepared)
            raise requests.exceptions.ConnectionError(message)
        when(self.session).send(...).thenAnswer(answer)

    def request(self, method, url, **kw):
        response = self.client.open(url, method=method, **kw)
        body = response.get_data()
        # Runs the deferred cache write, as a server does once the body is sent.
        response.close()
        return response, body

    def test_cached_then_served_when_upstream_is_down(self):
        self.upstream_returns(make_response(headers={'X-Rate': '10', 'Content-Type': 'application/json'},
                                            body=b'{"id":5}'))

        response, body = self.request('GET', '/v1/items?id=5')

        self.assertEqual(200, response.status_code)
        self.assertEqual(b'{"id":5}', body)
        self.assertEqual('application/json', response.headers['Content-Type'])
        self.assertNotIn('x-src', response.headers)
        self.assertEqual('http://upstream:9000/v1/items?id=5', self.sent[0].url)
        self.assertEqual(b'{"id":5}', (self.directory / 'v1-items.json').read_bytes())
        with open(self.directory / 'v1-items.header', 'r') as f:
            self.assertEqual(['10'], json.load(f)['X-Rate'])

        self.upstream_fails()

        response, body = self.request('GET', '/v1/items')

        self.assertEqual(200, response.status_code)
        self.assertEqual(b'{"id":5}', body)
        self.assertEqual('from cached-proxy', response.headers['x-src'])
        self.assertEqual('10', response.headers['X-Rate'])

    def test_unseen_path_with_upstream_down(self):
        self.upstream_fails('Max retries exceeded with url: /never')

        response, body = self.request('GET', '/never')

        self.assertEqual(500, response.status_code)
        self.assertIn(b'Max retries exceeded with url: /never', body)
        self.assertNotIn('x-src', response.headers)

    def test_read_only_cache(self):
        client = self.make_client(ProxyConfig(upstream_host='http://upstream:9000', cache_path=self.directory,
                                              cache_write=False))
        (self.directory / 'items.json').write_bytes(b'stale')
        self.upstream_returns(make_response(body=b'fresh'))

        response = client.get('/items')
        self.assertEqual(b'fresh', response.get_data())
        response.close()

        self.assertEqual(b'stale', (self.directory / 'items.json').read_bytes())

        self.upstream_fails()

        response = client.get('/items')
        self.assertEqual(b'stale', response.get_data())
        self.assertEqual('from cached-proxy', response.headers['x-src'])

    def test_query_string_is_forwarded_verbatim(self):
        self.upstream_returns(make_response(body=b'[]'))

        self.request('GET', '/search?q=a%20b&tag=x&tag=y')

        self.assertEqual('http://upstream:9000/search?q=a%20b&tag=x&tag=y', self.sent[0].url)

    def test_root_path(self):
        self.upstream_returns(make_response(body=b'home'))

        response, body = self.request('GET', '/')

        self.assertEqual(b'home', body)
        self.assertEqual('http://upstream:9000/', self.sent[0].url)
        self.assertEqual(b'home', (self.directory / '.json').read_bytes())

    @data('POST', 'PUT', 'PATCH', 'DELETE')
    def test_body_is_forwarded(self, method):
        self.upstream_returns(make_response(body=b'ok'))

        response, body = self.request(method, '/items', data=b'{"name":"x"}', content_type='application/json')

        self.assertEqual(b'ok', body)
        self.assertEqual(method, self.sent[0].method)
        self.assertEqual(b'{"name":"x"}', self.sent[0].body)
        self.assertEqual(['application/json'], self.sent[0].headers.getlist('Content-Type'))

    def test_get_body_is_not_forwarded(self):
        self.upstream_returns(make_response(body=b'ok'))

        self.request('GET', '/items', data=b'ignored')

        self.assertIsNone(self.sent[0].body)

    def test_options_is_forwarded(self):
        self.upstream_returns(make_response(body=b''))

        self.request('OPTIONS', '/items')

        self.assertEqual('OPTIONS', self.sent[0].method)

    @data('PROPFIND', 'MKCOL', 'PURGE')
    def test_extension_methods_are_forwarded(self, method):
        self.upstream_returns(make_response(body=b'ok'))

        response, body = self.request(method, '/dav/file', data=b'<propfind/>')

        self.assertEqual(200, response.status_code)
        self.assertEqual(b'ok', body)
        self.assertEqual(method, self.sent[0].method)
        self.assertEqual(b'<propfind/>', self.sent[0].body)

    @data(('/files/a%3Fb', 'http://upstream:9000/files/a%3Fb'),
          ('/files/a%23b', 'http://upstream:9000/files/a%23b'),
          ('/files/a%2520b', 'http://upstream:9000/files/a%2520b'),
          ('/files/caf%C3%A9', 'http://upstream:9000/files/caf%C3%A9'))
    @unpack
    def test_encoded_path_reaches_upstream_intact(self, path, url):
        self.upstream_returns(make_response(body=b'ok'))

        self.request('GET', path)

        self.assertEqual(url, self.sent[0].url)

    def test_utf8_query_is_not_double_encoded(self):
        self.upstream_returns(make_response(body=b'[]'))

        response = self.client.get('/search', environ_overrides={'QUERY_STRING': 'q=caf\xc3\xa9'})
        response.close()

        self.assertEqual('http://upstream:9000/search?q=caf%C3%A9', self.sent[0].url)

    def test_static_prefix_is_forwarded(self):
        self.upstream_returns(make_response(body=b'css'))

        response, body = self.request('GET', '/static/site.css')

        self.assertEqual(b'css', body)
        self.assertEqual('http://upstream:9000/static/site.css', self.sent[0].url)

    def test_request_headers_are_forwarded(self):
        self.upstream_returns(make_response(body=b'ok'))

        self.request('GET', '/items', headers={'X-Trace': 'abc', 'Authorization': 'Bearer token'})

        headers = self.sent[0].headers
        self.assertEqual(['abc'], headers.getlist('X-Trace'))
        self.assertEqual(['Bearer token'], headers.getlist('Authorization'))
        self.assertNotIn('Host', headers)

    def test_all_methods_share_one_entry_per_path(self):
        self.upstream_returns(make_response(body=b'created'))
        self.request('POST', '/items', data=b'{}')

        self.upstream_fails()
        response, body = self.request('GET', '/items')

        self.assertEqual(b'created', body)
        self.assertEqual('from cached-proxy', response.headers['x-src'])

    def test_construction_error(self):
        client = self.make_client(ProxyConfig(upstream_host='upstream-without-scheme', cache_path=self.directory))

        response = client.get('/items')

        self.assertEqual(500, response.status_code)
        self.assertIn(b'No scheme supplied', response.get_data())
        self.assertNotIn('x-src', response.headers)


class TestCreateCoordinator(TestCase):
    def test_builds_from_config(self):
        with TemporaryDirectory() as directory:
            config = ProxyConfig(upstream_host='http://upstream:9000', cache_path=Path(directory),
                                 key_strategy='hashed', key_by_method=True)

            coordinator = create_coordinator(config)

            self.assertIsInstance(coordinator, FallbackCoordinator)
            self.assertEqual('/GET/items', coordinator.key_for(InboundRequest(method='GET', path='/items')))

    def test_rejects_unknown_key_strategy(self):
        with self.assertRaises(ValueError):
            create_coordinator(ProxyConfig(upstream_host='http://upstream:9000', key_strategy='sharded'))
