""" Built-in middleware. :func:`defaults` returns the default middleware set
    for a server; each module here can also be used on its own.
"""

from .describe import Describe
from .dynamic import Dynamic
from .eval import Eval
from .load import LoadFile
from .printer import Print
from .sessions import Sessions
from .stdin import Stdin


def defaults(store, stack=None, printer='repr'):
    """ Return a list of the default middleware, in registration order, for
        sessions in *store*. The ``dynamic-loader`` middleware is included
        if a *stack* (:class:`mrepl.server.Stack`) is provided; *printer* is
        the name of the default value printer.
    """

    printing = Print(printer)

    middleware = list()
    middleware.append(Sessions(store))
    middleware.append(Describe())
    middleware.append(printing)
    middleware.append(Stdin())
    middleware.append(LoadFile())
    middleware.append(Eval(printing))

    if stack is not None:
        middleware.append(Dynamic(stack))

    return middleware


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
