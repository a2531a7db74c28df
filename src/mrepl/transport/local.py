"""In-process transport.

Responses are collected on a queue instead of being put on a wire; this is
what embedding applications and the unit tests use to talk to a
:class:`mrepl.dispatch.Dispatcher` directly.
"""

from __future__ import annotations

import queue
import threading
from typing import List, Optional

from ..protocol import fields
from ..protocol.message import Message
from .base import Transport, TransportTimeout


class LocalTransport(Transport):
    """Collect every response sent through this transport."""

    def __init__(self):
        self.responses: List[Message] = []
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._lock = threading.Lock()

    def send(self, msg: Message) -> None:
        with self._lock:
            self.responses.append(msg)
        self._queue.put(msg)

    def recv(self, timeout: Optional[float] = 5) -> Message:
        """Return the next response, in the order they were sent."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TransportTimeout(f"no response in {timeout} sec") from None

    def until_done(self, msg_id: str, timeout: Optional[float] = 5) -> List[Message]:
        """Receive responses until one for *msg_id* carries a done status.

        Returns every response for *msg_id* received along the way;
        responses to other requests are left in :attr:`responses` only.
        """

        collected = []
        while True:
            response = self.recv(timeout)
            if response.id != msg_id:
                continue
            collected.append(response)
            if fields.DONE in response.status:
                return collected

    def of(self, msg_id: str) -> List[Message]:
        """Every response sent so far for *msg_id*."""
        with self._lock:
            return [r for r in self.responses if r.id == msg_id]
