import io
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, List, Optional

import pytest
import requests
from requests.adapters import BaseAdapter

from taxis99 import Client


class RecordedRequest:
    def __init__(self, method: str, path: str, headers: Any, body: bytes):
        self.method = method
        self.path = path
        self.headers = headers
        self.body = body


class MockServer:
    """Local HTTP server recording every request it receives.

    `respond` is called with the RecordedRequest and returns (status, body bytes);
    left as None the server answers 200 with an empty body.
    """

    def __init__(self):
        self.requests: List[RecordedRequest] = []
        self.respond: Optional[Callable[[RecordedRequest], Any]] = None
        mock = self

        class _Handler(BaseHTTPRequestHandler):
            def __getattr__(self, name):
                if name.startswith('do_'):
                    return self._dispatch
                raise AttributeError(name)

            def _dispatch(self):
                length = int(self.headers.get('Content-Length') or 0)
                body = self.rfile.read(length) if length else b''
                rec = RecordedRequest(self.command, self.path, self.headers, body)
                mock.requests.append(rec)
                status, payload = 200, b''
                if mock.respond is not None:
                    status, payload = mock.respond(rec)
                self.send_response(status)
                self.send_header('Content-Length', str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, format, *args):
                pass

        self._server = ThreadingHTTPServer(('127.0.0.1', 0), _Handler)
        self._server.daemon_threads = True
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self._server.server_address[:2]
        return f'http://{host}:{port}'

    @property
    def invoked(self) -> bool:
        return bool(self.requests)

    def start(self) -> 'MockServer':
        self._thread.start()
        return self

    def close(self) -> None:
        self._server.shutdown()
        self._server.server_close()


class FakeAdapter(BaseAdapter):
    """Transport double: hands each prepared request to `fn` instead of the network."""

    def __init__(self, fn: Callable[[requests.PreparedRequest], requests.Response]):
        super().__init__()
        self.fn = fn
        self.calls: List[requests.PreparedRequest] = []
        self.timeouts: List[Any] = []

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.calls.append(request)
        self.timeouts.append(timeout)
        return self.fn(request)

    def close(self):
        pass


def make_response(request: requests.PreparedRequest, body: bytes = b'', status: int = 200) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.raw = io.BytesIO(body)
    resp.request = request
    resp.url = request.url
    return resp


def fake_session(adapter: FakeAdapter) -> requests.Session:
    session = requests.Session()
    session.mount('http://', adapter)
    session.mount('https://', adapter)
    return session


@pytest.fixture
def server():
    srv = MockServer().start()
    yield srv
    srv.close()


@pytest.fixture
def client(server):
    return Client(base_url=server.url + '/')
