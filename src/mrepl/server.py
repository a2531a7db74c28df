""" The :class:`Stack` tracks the middleware a server is running with and the
    chain composed from it; the :class:`Server` ties a stack, a session
    store, a dispatcher, and a network transport together.
"""

import importlib
import logging
import threading

from . import config
from . import ops
from .dispatch import Dispatcher
from .middleware import CyclicDependency, Middleware, Registry
from .middleware import stack as compose_stack
from .session import SessionStore

logger = logging.getLogger(__name__)


def resolve(reference):
    """ Return the :class:`mrepl.middleware.Middleware` named by *reference*,
        a ``module:attribute`` string. If the attribute is a Middleware
        subclass it is instantiated with no arguments. ImportError,
        AttributeError, or TypeError are raised if the reference does not
        lead to middleware.
    """

    if isinstance(reference, Middleware):
        return reference

    reference = str(reference)

    try:
        module_name, attribute = reference.split(':', 1)
    except ValueError:
        raise ValueError("middleware references look like 'module:attribute', not " + repr(reference)) from None

    module = importlib.import_module(module_name)

    found = module
    for name in attribute.split('.'):
        found = getattr(found, name)

    if isinstance(found, type) and issubclass(found, Middleware):
        found = found()

    if not isinstance(found, Middleware):
        raise TypeError(reference + ' is not middleware: ' + repr(found))

    return found



class Stack:
    """ The default and the user-supplied middleware of a server, and the
        :class:`mrepl.middleware.Chain` composed from their union. Every
        successful change calls each callable in :attr:`listeners` with the
        new chain.

        A change that cannot be composed, because of a dependency cycle,
        raises :class:`mrepl.middleware.CyclicDependency` and leaves the
        stack exactly as it was.
    """

    def __init__(self, defaults=(), extra=()):

        self.defaults = list(defaults)
        self.extra = list(extra)
        self.listeners = list()
        self.registry = None
        self.chain = None

        self._lock = threading.RLock()
        self._resolved = dict()

        if self.defaults or self.extra:
            self.rebuild()


    def set_defaults(self, defaults, extra=None):

        if extra is None:
            extra = self.extra

        with self._lock:
            self._commit(list(defaults), list(extra))


    def rebuild(self):
        """ Compose the chain again from the current middleware.
        """

        with self._lock:
            self._commit(self.defaults, self.extra)

        return self.chain


    def add(self, middleware):
        """ Add each of *middleware* that is not already present to the user
            set, then recompose.
        """

        with self._lock:
            extra = list(self.extra)
            for unit in middleware:
                if unit in extra or unit in self.defaults:
                    continue
                extra.append(unit)

            self._commit(self.defaults, extra)


    def swap(self, middleware):
        """ Replace the user set with *middleware*, then recompose. The
            default middleware remains.
        """

        with self._lock:
            extra = list()
            for unit in middleware:
                if unit in extra or unit in self.defaults:
                    continue
                extra.append(unit)

            self._commit(self.defaults, extra)


    def names(self):

        if self.chain is None:
            return list()

        return self.chain.names()


    def resolve(self, references):
        """ Resolve each ``module:attribute`` string in *references*, and
            return a (resolved, unresolved) tuple of lists. A reference
            resolved once always yields the same instance.
        """

        resolved = list()
        unresolved = list()

        for reference in references:
            try:
                unit = self._resolved[reference]
            except (KeyError, TypeError):
                try:
                    unit = resolve(reference)
                except (ImportError, AttributeError, TypeError, ValueError) as e:
                    logger.warning('unable to resolve middleware %s: %s', reference, e)
                    unresolved.append(reference)
                    continue

                if isinstance(reference, str):
                    self._resolved[reference] = unit

            resolved.append(unit)

        return resolved, unresolved


    def _commit(self, defaults, extra):

        registry = Registry.merge(defaults, extra)

        try:
            chain = compose_stack(registry)
        except CyclicDependency as e:
            logger.error('middleware change rejected: %s', e)
            raise

        self.defaults = defaults
        self.extra = extra
        self.registry = registry
        self.chain = chain

        logger.info('middleware stack: %s', ', '.join(chain.names()))

        for listener in tuple(self.listeners):
            listener(chain)


# end of class Stack



class Server:
    """ A running mrepl server. *settings* is a
        :class:`mrepl.config.Settings` instance, loaded from the default
        location if not provided; *middleware* is added to the defaults
        alongside any references named in the settings.

        *transport_factory* is called with the dispatch callable, the
        address, and the port, and must return an object with ``port`` and
        ``close()``; the default is the ZeroMQ request server.
    """

    def __init__(self, settings=None, middleware=(), transport_factory=None):

        if settings is None:
            settings = config.load()

        self.settings = settings
        self.store = SessionStore()
        self.stack = Stack()

        resolved, unresolved = self.stack.resolve(settings.middleware)
        if unresolved:
            raise ValueError('unable to resolve middleware: ' + ', '.join(unresolved))

        extra = list(middleware) + resolved
        defaults = ops.defaults(self.store, self.stack, settings.printer)
        self.stack.set_defaults(defaults, extra)

        self.dispatcher = Dispatcher(self.stack.chain, self.store, settings.workers)
        self.stack.listeners.append(self.dispatcher.use)

        if transport_factory is None:
            from .transport.zmq import Server as transport_factory

        try:
            self.transport = transport_factory(self.dispatcher.dispatch, settings.address, settings.port)
        except Exception:
            self.dispatcher.close(wait=False)
            raise

        self.port = self.transport.port
        self.address = settings.address
        self._stopped = threading.Event()

        config.save_port(self.port)

        logger.info('listening on %s:%d', self.address, self.port)


    def wait(self, timeout=None):
        """ Block until :func:`close` is called, or until *timeout* seconds
            elapse; return True if the server is closed.
        """

        return self._stopped.wait(timeout)


    def close(self):

        if self._stopped.is_set():
            return

        self._stopped.set()

        self.store.close_all()
        self.transport.close()
        self.dispatcher.close(wait=False)
        config.remove_port()

        logger.info('server on port %d closed', self.port)


# end of class Server


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
