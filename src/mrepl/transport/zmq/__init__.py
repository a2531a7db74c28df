"""ZeroMQ request/response transport."""

from .request import Client, Server, client, send
