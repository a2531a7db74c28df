"""ZeroMQ request/response transport.

A ROUTER socket on the server side, a DEALER socket on the client side.
One request may produce any number of responses; the client considers a
request finished once a response carrying the ``done`` status arrives.

ZeroMQ sockets are not thread-safe. Each endpoint owns a background thread
that does all of the socket I/O; other threads hand it frames through a
queue and poke it awake through an inproc PAIR socket.
"""

from __future__ import annotations

import atexit
import logging
import queue
import threading
from typing import Callable, Dict, List, Optional, Tuple

import zmq

from ...protocol import fields
from ...protocol.message import Message
from ..base import Transport, TransportPortError, TransportTimeout
from .framing import FramingError, error_frames, from_frames, to_frames

logger = logging.getLogger(__name__)

minimum_port = 10079
maximum_port = 13679
zmq_context = zmq.Context()

Frames = Tuple[bytes, ...]


class _Endpoint:
    """Socket I/O thread shared by :class:`Client` and :class:`Server`."""

    def __init__(self, socket: zmq.Socket):
        self.socket = socket
        self.shutdown = False

        self._outbox: queue.SimpleQueue = queue.SimpleQueue()

        wakeup = f"inproc://mrepl.{type(self).__name__}.{id(self)}"
        self._wakeup_rx = zmq_context.socket(zmq.PAIR)
        self._wakeup_rx.bind(wakeup)
        self._wakeup_tx = zmq_context.socket(zmq.PAIR)
        self._wakeup_tx.connect(wakeup)
        self._wakeup_lock = threading.Lock()

        self.thread = threading.Thread(target=self._loop, name=f"mrepl-{type(self).__name__.lower()}", daemon=True)

    def _enqueue(self, frames: Frames) -> None:
        self._outbox.put(frames)
        with self._wakeup_lock:
            self._wakeup_tx.send(b"")

    def _received(self, parts: Frames) -> None:
        raise NotImplementedError

    def _loop(self) -> None:
        poller = zmq.Poller()
        poller.register(self.socket, zmq.POLLIN)
        poller.register(self._wakeup_rx, zmq.POLLIN)

        while not self.shutdown:
            ready = dict(poller.poll(1000))

            if self._wakeup_rx in ready:
                # One wakeup per queued item.
                self._wakeup_rx.recv(flags=zmq.NOBLOCK)
                self.socket.send_multipart(self._outbox.get(block=False))

            if self.socket in ready:
                self._received(tuple(self.socket.recv_multipart()))

        self.socket.close()
        self._wakeup_rx.close()

    def close(self) -> None:
        self.shutdown = True
        if self.thread.is_alive() and self.thread is not threading.current_thread():
            self.thread.join(timeout=2)

        with self._wakeup_lock:
            self._wakeup_tx.close()


class PendingRequest:
    """The responses to one request, as they arrive."""

    def __init__(self, req: Message):
        self.req = req
        self.responses: List[Message] = []
        self.done = threading.Event()
        self._arrivals: queue.SimpleQueue = queue.SimpleQueue()
        self._lock = threading.Lock()

    @property
    def id(self) -> str:
        return self.req.id

    def wait(self, timeout: Optional[float] = 60) -> List[Message]:
        """Block until the request is done; return every response."""
        if not self.done.wait(timeout):
            raise TransportTimeout(f"{self.req.op} {self.id}: not done in {timeout} sec")
        with self._lock:
            return list(self.responses)

    def recv(self, timeout: Optional[float] = 60) -> Message:
        """Return the next response, blocking until it arrives."""
        try:
            return self._arrivals.get(timeout=timeout)
        except queue.Empty:
            raise TransportTimeout(f"{self.req.op} {self.id}: no response in {timeout} sec") from None

    def _arrived(self, response: Message) -> None:
        with self._lock:
            self.responses.append(response)
        self._arrivals.put(response)
        if fields.DONE in response.status:
            self.done.set()


class Client(_Endpoint):
    """Send requests to a :class:`Server` and collect the responses."""

    def __init__(self, address: str, port: int):
        self.address = address
        self.port = int(port)

        socket = zmq_context.socket(zmq.DEALER)
        socket.setsockopt(zmq.LINGER, 0)
        socket.connect(f"tcp://{address}:{self.port}")

        _Endpoint.__init__(self, socket)

        self._pending: Dict[str, PendingRequest] = {}
        self._pending_lock = threading.Lock()
        self.thread.start()

    def send(self, req: Message) -> PendingRequest:
        """Queue *req* for delivery; the caller decides whether to wait."""
        if req.id is None:
            raise ValueError("requests must have an id")

        # Encoding here means an unencodable request fails in the caller.
        frames = to_frames(req)

        pending = PendingRequest(req)
        with self._pending_lock:
            self._pending[req.id] = pending

        self._enqueue(frames)
        return pending

    def _received(self, parts: Frames) -> None:
        try:
            _prefix, response = from_frames(parts)
        except FramingError as exc:
            logger.warning("discarding response from %s:%d: %s", self.address, self.port, exc)
            return

        with self._pending_lock:
            pending = self._pending.get(response.id)

        if pending is None:
            logger.debug("response for unknown request %s", response.id)
            return

        pending._arrived(response)

        if pending.done.is_set():
            with self._pending_lock:
                self._pending.pop(response.id, None)


class _Reply(Transport):
    """Route responses back to the client a request came from."""

    def __init__(self, server: "Server", prefix: Frames):
        self.server = server
        self.prefix = prefix

    def send(self, msg: Message) -> None:
        self.server._enqueue(to_frames(msg, self.prefix))


class Server(_Endpoint):
    """Accept requests on a ZeroMQ ROUTER socket.

    Every decoded request is handed to *handler* (normally
    :meth:`mrepl.dispatch.Dispatcher.dispatch`) on the socket thread, with
    its transport set to route responses back to the originating client.
    The handler must not block. If *port* is None the first free port
    between :data:`minimum_port` and :data:`maximum_port` is used.
    """

    def __init__(
        self,
        handler: Callable[[Message], None],
        address: Optional[str] = None,
        port: Optional[int] = None,
    ):
        self.handler = handler
        self.address = address or "127.0.0.1"

        socket = zmq_context.socket(zmq.ROUTER)
        socket.setsockopt(zmq.LINGER, 0)

        try:
            if port is None:
                self.port = _bind_first(socket, self.address)
            else:
                self.port = int(port)
                try:
                    socket.bind(f"tcp://{self.address}:{self.port}")
                except zmq.ZMQError as exc:
                    raise TransportPortError(f"cannot bind {self.address}:{self.port}: {exc}") from exc
        except TransportPortError:
            socket.close()
            raise

        _Endpoint.__init__(self, socket)
        self.thread.start()

    def _received(self, parts: Frames) -> None:
        try:
            prefix, req = from_frames(parts)
        except FramingError as exc:
            logger.warning("rejecting request: %s", exc)
            self.socket.send_multipart(error_frames(tuple(parts[:1]), str(exc)))
            return

        req.transport = _Reply(self, prefix)

        try:
            self.handler(req)
        except Exception:
            logger.exception("unable to dispatch %s %s", req.op, req.id)


def _bind_first(socket: zmq.Socket, address: str) -> int:
    for port in range(minimum_port, maximum_port + 1):
        try:
            socket.bind(f"tcp://{address}:{port}")
        except zmq.ZMQError:
            continue
        return port

    raise TransportPortError(f"no free port on {address} between {minimum_port} and {maximum_port}")


# Clients are cached per server, one socket each.

_clients: Dict[Tuple[str, int], Client] = {}
_clients_lock = threading.Lock()


def client(address: str, port: int) -> Client:
    """Return the cached :class:`Client` for *address* and *port*."""
    key = (address, int(port))
    with _clients_lock:
        try:
            return _clients[key]
        except KeyError:
            connection = Client(address, int(port))
            _clients[key] = connection
            return connection


def send(address: str, port: int, req: Message, timeout: Optional[float] = 60) -> List[Message]:
    """Send *req* and block until it is done; return every response."""
    return client(address, port).send(req).wait(timeout)


def _shutdown() -> None:
    with _clients_lock:
        for connection in _clients.values():
            connection.shutdown = True
        _clients.clear()


atexit.register(_shutdown)
