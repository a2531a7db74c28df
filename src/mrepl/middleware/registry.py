""" The :class:`Registry` holds the set of middleware participating in one
    composition pass, together with the descriptor registered for each.
"""

import threading

from .descriptor import Descriptor, Middleware


class Registry:
    """ An ordered collection of :class:`Middleware` instances and their
        :class:`Descriptor`. Registration order is remembered; it is the
        tie-break the linearizer uses when two middleware have no ordering
        constraint between them.

        An operation may be claimed by more than one middleware; the registry
        does not reject this, the ambiguity is resolved when the dependency
        graph is built.
    """

    def __init__(self, middleware=()):

        self._entries = dict()
        self._lock = threading.Lock()

        for unit in middleware:
            self.register(unit)


    def __contains__(self, middleware):
        return middleware in self._entries


    def __iter__(self):
        return iter(tuple(self._entries.keys()))


    def __len__(self):
        return len(self._entries)


    def __repr__(self):
        names = [unit.name for unit in self._entries.keys()]
        return 'Registry(' + repr(names) + ')'


    def register(self, middleware, descriptor=None):
        """ Add *middleware* to the registry. If no *descriptor* is provided
            the middleware's own :attr:`Middleware.descriptor` is used.
            Registering the same middleware again replaces its descriptor
            but keeps its original position in the registration order.
        """

        if not isinstance(middleware, Middleware):
            raise TypeError('expected a Middleware instance, got ' + repr(middleware))

        if descriptor is None:
            descriptor = middleware.descriptor

        if not isinstance(descriptor, Descriptor):
            raise TypeError('expected a Descriptor instance, got ' + repr(descriptor))

        with self._lock:
            self._entries[middleware] = descriptor


    def unregister(self, middleware):
        """ Remove *middleware* from the registry. A KeyError is raised if
            it was not registered.
        """

        with self._lock:
            del self._entries[middleware]


    def descriptor(self, middleware):
        return self._entries[middleware]


    def descriptors(self):
        """ Return the full set of (middleware, descriptor) pairs for a
            composition pass, as a list in registration order.
        """

        with self._lock:
            return list(self._entries.items())


    def handlers_of(self, op):
        """ Return a list of every middleware whose descriptor claims to
            handle the operation *op*, in registration order.
        """

        handlers = list()
        for middleware, descriptor in self.descriptors():
            if op in descriptor.handles:
                handlers.append(middleware)

        return handlers


    def ops(self):
        """ Return a dictionary mapping every handled operation name to its
            :class:`OpSpec`. If more than one middleware handles an operation
            the first registered one provides the documentation.
        """

        specs = dict()
        for middleware, descriptor in self.descriptors():
            for op, spec in descriptor.handles.items():
                specs.setdefault(op, spec)

        return specs


    def copy(self):
        duplicate = Registry()
        for middleware, descriptor in self.descriptors():
            duplicate.register(middleware, descriptor)
        return duplicate


    @classmethod
    def merge(cls, *sets):
        """ Return a new :class:`Registry` that is the plain union of the
            supplied middleware *sets*; each may be a :class:`Registry` or
            an iterable of :class:`Middleware` instances. The first
            registration of any given middleware determines its position.
        """

        merged = cls()

        for members in sets:
            if isinstance(members, Registry):
                entries = members.descriptors()
            else:
                entries = [(unit, None) for unit in members]

            for middleware, descriptor in entries:
                if middleware in merged:
                    continue
                merged.register(middleware, descriptor)

        return merged


# end of class Registry



def union(*sets):
    return Registry.merge(*sets)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
