"""
mrepl Protocol Layer
====================

Transport-agnostic message model. A message is an open mapping of named
slots; the protocol layer only cares about a handful of them (``op``,
``id``, ``session``, ``status``) and passes the rest through.

The protocol layer MUST NOT depend on any transport implementation.

    Message Model (message.py)
        - Message: slots + local request context
        - request(): client-side constructor with id assignment

    Field Vocabulary (fields.py)
        Canonical slot names and status values
"""

from . import fields
from . import message

from .message import Message, request


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
