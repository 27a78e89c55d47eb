"""Wall-clock deadline enforcement for a single probe.

httpx timeouts apply to each network operation separately, so a server that
trickles bytes or a chain of slow redirects can keep a request alive well past
its timeout. The classes here bind every connect, write and read performed by
the transport to one shared monotonic deadline instead.
"""

import time
import typing
from typing import Optional

import httpcore
import httpx


class Deadline:
    """A fixed point in monotonic time after which the probe must give up."""

    def __init__(self, seconds: int) -> None:
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def describe(self) -> str:
        return f"request exceeded {self.seconds}s deadline"

    def clamp(self, timeout: Optional[float], exc_class: type[Exception]) -> float:
        """Return `timeout` shortened to the time left, raising once none is left.

        Args:
            timeout: The per-operation timeout requested by the connection.
            exc_class: httpcore exception raised when the deadline has passed.
        """
        remaining = self.remaining()
        if remaining <= 0:
            raise exc_class(self.describe())
        if timeout is None:
            return remaining
        return min(timeout, remaining)


class DeadlineStream(httpcore.NetworkStream):
    """Network stream whose I/O never waits past the deadline."""

    def __init__(self, stream: httpcore.NetworkStream, deadline: Deadline) -> None:
        self._stream = stream
        self._deadline = deadline

    def read(self, max_bytes: int, timeout: Optional[float] = None) -> bytes:
        return self._stream.read(max_bytes, self._deadline.clamp(timeout, httpcore.ReadTimeout))

    def write(self, buffer: bytes, timeout: Optional[float] = None) -> None:
        self._stream.write(buffer, self._deadline.clamp(timeout, httpcore.WriteTimeout))

    def close(self) -> None:
        self._stream.close()

    def start_tls(
        self,
        ssl_context,
        server_hostname: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> httpcore.NetworkStream:
        stream = self._stream.start_tls(
            ssl_context,
            server_hostname,
            self._deadline.clamp(timeout, httpcore.ConnectTimeout),
        )
        return DeadlineStream(stream, self._deadline)

    def get_extra_info(self, info: str) -> typing.Any:
        return self._stream.get_extra_info(info)


class DeadlineBackend(httpcore.NetworkBackend):
    """Synchronous socket backend that opens deadline-bound streams."""

    def __init__(self, deadline: Deadline) -> None:
        self._backend = httpcore.SyncBackend()
        self._deadline = deadline

    def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        local_address: Optional[str] = None,
        socket_options=None,
    ) -> httpcore.NetworkStream:
        stream = self._backend.connect_tcp(
            host,
            port,
            self._deadline.clamp(timeout, httpcore.ConnectTimeout),
            local_address=local_address,
            socket_options=socket_options,
        )
        return DeadlineStream(stream, self._deadline)

    def connect_unix_socket(
        self,
        path: str,
        timeout: Optional[float] = None,
        socket_options=None,
    ) -> httpcore.NetworkStream:
        stream = self._backend.connect_unix_socket(
            path,
            self._deadline.clamp(timeout, httpcore.ConnectTimeout),
            socket_options=socket_options,
        )
        return DeadlineStream(stream, self._deadline)

    def sleep(self, seconds: float) -> None:
        self._backend.sleep(min(seconds, self._deadline.remaining()))


class DeadlineTransport(httpx.HTTPTransport):
    """Default httpx transport with its connection pool bound to a deadline.

    httpx exposes no hook for the network backend, so the pool built by
    `HTTPTransport.__init__` is replaced with one using `DeadlineBackend`.
    Request conversion and exception mapping are inherited unchanged.
    """

    def __init__(self, deadline: Deadline) -> None:
        super().__init__()
        self._pool = httpcore.ConnectionPool(
            ssl_context=httpx.create_ssl_context(),
            network_backend=DeadlineBackend(deadline),
        )
