"""Shared test fixtures for the Truelist client tests."""

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import Mock

import pytest
import requests

from truelist.client import Client
from truelist.ratelimit import RateLimiter


def make_response(status=200, body=b""):
    """Build a completed requests.Response without touching the network."""
    r = requests.Response()
    r.status_code = status
    if not isinstance(body, bytes):
        body = json.dumps(body).encode()
    r._content = body
    r._content_consumed = True
    return r


class FakeClock:
    """Manual clock; sleeping advances time instantly."""

    def __init__(self, start=100.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    s = requests.Session()
    s.request = Mock(return_value=make_response(200, {}))
    return s


@pytest.fixture
def client(session):
    # Large bucket so tests never wait on the limiter.
    return Client("tk_test", base_url="https://mock.truelist.test", session=session,
                  limiter=RateLimiter(capacity=1000))


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Isolated HOME with no API key in the environment."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("TRUELIST_API_KEY", "")
    monkeypatch.delenv("TRUELIST_API_KEY")
    monkeypatch.setenv("TRUELIST_BASE_URL", "")
    monkeypatch.delenv("TRUELIST_BASE_URL")
    monkeypatch.chdir(tmp_path)
    return tmp_path


class SlowHandler(BaseHTTPRequestHandler):
    """POST hangs before answering; GET trickles its body a byte at a time."""

    def do_POST(self):
        self.server.release.wait(10)
        body = b'{"state": "valid"}'
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        try:
            while not self.server.release.wait(0.05):
                self.wfile.write(b" ")
                self.wfile.flush()
        except OSError:
            pass

    def log_message(self, *args):
        pass


@pytest.fixture
def slow_server():
    """Local HTTP server that never answers promptly; yields its base URL."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), SlowHandler)
    server.daemon_threads = True
    server.release = threading.Event()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.release.set()
    server.shutdown()
    server.server_close()
