"""Where responses go.

Middleware only ever calls :meth:`Transport.send` on the transport attached
to a request; how the response reaches the client (a queue in the same
process, a ZeroMQ socket) is up to the implementation. Nothing in
:mod:`mrepl.protocol` depends on this module.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..protocol.message import Message


class TransportError(Exception):
    """Something went wrong delivering or receiving a message."""


class TransportTimeout(TransportError):
    """A response did not arrive in the time allowed."""


class TransportPortError(TransportError):
    """A server could not bind the requested (or any) port."""


class Transport(ABC):
    """Deliver responses to the client that sent a request."""

    @abstractmethod
    def send(self, msg: Message) -> None:
        """Deliver one response Message."""

    def close(self) -> None:
        """Release any resources held by the transport."""
