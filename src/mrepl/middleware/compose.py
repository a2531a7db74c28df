""" Fold an ordered list of middleware into a single handler. The handler
    produced here is what the dispatcher invokes for every message; it is
    rebuilt only when the set of middleware changes.
"""

from ..protocol import fields
from . import graph as graph_module
from .linearize import linearize


def unknown_op(message):
    """ The fallback handler at the base of every chain. A message reaching
        this point was not handled by any middleware; the client is told so
        with a single response carrying the ``unknown-op`` status.
    """

    status = (fields.ERROR, fields.UNKNOWN_OP, fields.DONE)
    message.respond({fields.STATUS: status, fields.OP: message.op})



class Layer:
    """ One level of the composed handler: calling a :class:`Layer` hands
        the message to its *middleware*, with the *inner* layer (or the
        fallback handler) as the next handler in the chain.
    """

    __slots__ = ('middleware', 'inner')

    def __init__(self, middleware, inner):
        self.middleware = middleware
        self.inner = inner


    def __call__(self, message):
        self.middleware.handle(message, self.inner)


    def __repr__(self):
        return '<layer ' + str(self.middleware.name) + '>'


# end of class Layer



class Chain:
    """ The composed handler. Calling a :class:`Chain` processes one message
        through every middleware, outermost first.

        :ivar order: The middleware, outermost first.
        :ivar descriptors: The (middleware, descriptor) pairs this chain was
                           built from, in processing order.
        :ivar immediate: Operation names the dispatcher should run outside
                         of the session's serialized queue.
    """

    def __init__(self, entries, fallback=unknown_op):

        entries = list(entries)

        self.order = tuple(middleware for middleware, descriptor in entries)
        self.descriptors = tuple(entries)
        self.fallback = fallback

        immediate = set()
        for middleware, descriptor in entries:
            immediate.update(descriptor.immediate)
        self.immediate = frozenset(immediate)

        # Fold from the inside out: the fallback is the innermost handler,
        # and each middleware, in reverse order, wraps what came before.

        handler = fallback
        for middleware in reversed(self.order):
            handler = Layer(middleware, handler)

        self.handler = handler


    def __call__(self, message):
        message.chain = self
        self.handler(message)


    def __iter__(self):
        return iter(self.order)


    def __len__(self):
        return len(self.order)


    def __repr__(self):
        return 'Chain(' + repr(self.names()) + ')'


    def names(self):
        return [middleware.name for middleware in self.order]


    def ops(self):
        """ Return a dictionary mapping every operation handled somewhere in
            this chain to its :class:`OpSpec`. If more than one middleware
            handles an operation, the outermost one wins, since that is the
            one that will actually see the message first.
        """

        specs = dict()
        for middleware, descriptor in self.descriptors:
            for op, spec in descriptor.handles.items():
                specs.setdefault(op, spec)

        return specs


# end of class Chain



def compose(order, registry, fallback=unknown_op):
    """ Return a :class:`Chain` for the middleware in *order*, outermost
        first, using the descriptors in *registry*.
    """

    entries = [(middleware, registry.descriptor(middleware)) for middleware in order]
    return Chain(entries, fallback)



def stack(registry, fallback=unknown_op):
    """ Build the dependency graph for *registry*, linearize it, and compose
        the result. :class:`mrepl.middleware.CyclicDependency` propagates to
        the caller.
    """

    graph = graph_module.build(registry)
    order = linearize(graph)
    return compose(order, registry, fallback)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
