"""Test configuration and shared fixtures.

Provide isolated probe settings, in-memory HTTP transports and local sockets
for the probe test suite. All fixtures ensure tests run without reading
environment files or depending on services outside the test process.
"""
import http.server
import logging
import socket
import socketserver
import threading
import time
from typing import Callable, Generator

import httpx
import pytest

from healthprobe.config import DEFAULT_TIMEOUT, DEFAULT_URL, Settings, get_settings

# ==============================================================================
# CONFIGURATION FIXTURES
# ==============================================================================

@pytest.fixture(scope="session")
def mock_settings() -> Settings:
    """Provide isolated test configuration without external dependencies.

    Returns:
        Settings: Quiet development configuration with the `.env` file bypassed.
    """
    return Settings(
        HEALTHCHECK_URL=DEFAULT_URL,
        HEALTHCHECK_TIMEOUT=DEFAULT_TIMEOUT,
        ENVIRONMENT="development",
        LOG_LEVEL="warning",
        _env_file=None  # Bypass local environment file
    )


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Drop the cached settings singleton around each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def restore_root_logging() -> Generator[None, None, None]:
    """Restore root logger handlers replaced by the CLI's dictConfig call."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)

# ==============================================================================
# TRANSPORT HELPERS
# ==============================================================================

@pytest.fixture
def status_transport() -> Callable[[int], httpx.MockTransport]:
    """Provide a factory for transports that answer every request with one status.

    Returns:
        Callable: Takes a status code and returns an `httpx.MockTransport`.
    """
    def factory(status_code: int) -> httpx.MockTransport:
        return httpx.MockTransport(lambda request: httpx.Response(status_code))
    return factory


@pytest.fixture
def failing_transport() -> Callable[..., httpx.MockTransport]:
    """Provide a factory for transports that raise a given exception type.

    Returns:
        Callable: Takes an httpx exception class and a message.
    """
    def factory(exc_class: type[httpx.RequestError], message: str = "") -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            raise exc_class(message, request=request)
        return httpx.MockTransport(handler)
    return factory

# ==============================================================================
# SOCKET HELPERS
# ==============================================================================

@pytest.fixture
def closed_port_url() -> str:
    """Return a loopback URL on a port with nothing listening.

    The port is reserved by binding, then released, so connections are refused.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/"


@pytest.fixture
def silent_server_url() -> Generator[str, None, None]:
    """Yield a loopback URL that accepts connections but never responds.

    The listening socket is never accepted from, so the TCP handshake completes
    via the backlog and the client blocks waiting for a response.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(8)
        port = sock.getsockname()[1]
        yield f"http://127.0.0.1:{port}/"


# ==============================================================================
# LOCAL HTTP SERVERS
# ==============================================================================

class _LocalServer(socketserver.ThreadingTCPServer):
    """Loopback server whose handler threads never delay teardown."""
    daemon_threads = True
    block_on_close = False
    allow_reuse_address = True

    def handle_error(self, request, client_address):
        # Clients that hit their deadline disconnect mid-response.
        pass


class RedirectChainHandler(http.server.BaseHTTPRequestHandler):
    """Serve `/hop/<n>`: redirect to the next hop until `hops`, then answer 200.

    Every response is delayed by `delay` seconds.
    """
    hops = 5
    delay = 0.0

    def do_GET(self):
        time.sleep(self.delay)
        hop = int(self.path.rsplit("/", 1)[-1])
        if hop < self.hops:
            self.send_response(302)
            self.send_header("Location", f"/hop/{hop + 1}")
        else:
            self.send_response(200)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format, *args):
        pass


class TrickleHeadersHandler(socketserver.BaseRequestHandler):
    """Answer 200 but send one header line every `interval` seconds."""
    interval = 0.5
    lines = 8

    def handle(self):
        self.request.recv(65536)
        try:
            self.request.sendall(b"HTTP/1.1 200 OK\r\n")
            for index in range(self.lines):
                time.sleep(self.interval)
                self.request.sendall(f"X-Filler-{index}: x\r\n".encode())
            self.request.sendall(b"Content-Length: 0\r\n\r\n")
        except OSError:
            # Client gave up and closed the connection.
            return


@pytest.fixture
def serve() -> Generator[Callable[[type], str], None, None]:
    """Provide a factory that runs a handler class on a loopback server.

    Yields:
        Callable: Takes a request handler class and returns the server's base URL.
    """
    servers = []

    def factory(handler_class: type) -> str:
        server = _LocalServer(("127.0.0.1", 0), handler_class)
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        return f"http://127.0.0.1:{server.server_address[1]}"

    yield factory

    for server in servers:
        server.shutdown()
        server.server_close()


@pytest.fixture
def slow_redirect_chain_url(serve) -> str:
    """URL of a five-hop redirect chain that spends 0.7 s on every hop."""
    handler = type("SlowRedirectChainHandler", (RedirectChainHandler,), {"delay": 0.7})
    return f"{serve(handler)}/hop/0"


@pytest.fixture
def trickle_headers_url(serve) -> str:
    """URL of a server that takes about four seconds to finish its headers."""
    return f"{serve(TrickleHeadersHandler)}/"


@pytest.fixture
def redirect_chain_url(serve) -> str:
    """URL of a five-hop redirect chain that answers immediately."""
    return f"{serve(RedirectChainHandler)}/hop/0"
