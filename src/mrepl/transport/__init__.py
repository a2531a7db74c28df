"""Transport layer implementations.

:mod:`.local` is always available; the ZeroMQ request/response transport is
in :mod:`.zmq` and only imported on demand.
"""

from .base import (
    Transport,
    TransportError,
    TransportTimeout,
    TransportPortError,
)

from .local import LocalTransport
