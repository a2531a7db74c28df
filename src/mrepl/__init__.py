""" Python implementation of mrepl, an interactive evaluation server built
    from composable middleware. This includes the middleware composition
    machinery, the session and dispatch layers that run messages through a
    composed chain, and the built-in operations a client talks to.
"""

# Utility components.

from . import json
from . import version

# Submodules used by multiple other components.

from . import protocol
from . import config
home = config.directory

from . import middleware
from . import session

# Primary public-facing interfaces.

from .middleware import Descriptor, Middleware, OpSpec
from .dispatch import Dispatcher
from .server import Server, Stack

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
