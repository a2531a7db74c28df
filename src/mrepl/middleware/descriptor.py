""" Middleware units and the metadata describing them. A :class:`Middleware`
    is the unit of behavior in mrepl; its :class:`Descriptor` says where it
    belongs in the processing chain relative to other middleware, and which
    operations it handles.
"""

import types


class OpSpec:
    """ Documentation for a single operation: a *doc* string, plus the
        *requires*, *optional*, and *returns* dictionaries, each mapping a
        slot name to a description of that slot. An :class:`OpSpec` carries
        no behavior; it is what the ``describe`` operation reports.
    """

    __slots__ = ('doc', 'requires', 'optional', 'returns')

    def __init__(self, doc='', requires=None, optional=None, returns=None):

        object.__setattr__(self, 'doc', str(doc))
        object.__setattr__(self, 'requires', _frozen(requires))
        object.__setattr__(self, 'optional', _frozen(optional))
        object.__setattr__(self, 'returns', _frozen(returns))


    def __setattr__(self, name, value):
        raise AttributeError('OpSpec instances are immutable')


    def __eq__(self, other):
        if not isinstance(other, OpSpec):
            return NotImplemented
        return self.to_dict() == other.to_dict()


    def __hash__(self):
        return hash(self.doc)


    def __repr__(self):
        return 'OpSpec(' + repr(self.to_dict()) + ')'


    def to_dict(self):
        """ Return a plain dictionary rendering of this specification, with
            the keys ``doc``, ``requires``, ``optional``, and ``returns``.
        """

        spec = dict()
        spec['doc'] = self.doc
        spec['requires'] = dict(self.requires)
        spec['optional'] = dict(self.optional)
        spec['returns'] = dict(self.returns)
        return spec


    @classmethod
    def from_dict(cls, spec):
        return cls(spec.get('doc', ''), spec.get('requires'), spec.get('optional'), spec.get('returns'))


# end of class OpSpec



class Descriptor:
    """ Ordering and documentation metadata for a :class:`Middleware`.

        *requires* and *expects* are collections of references; a reference
        is either a :class:`Middleware` instance, or a string naming an
        operation, which refers to every middleware that handles it. A
        required reference is ordered earlier (further out) than the
        middleware being described; an expected reference is ordered later
        (further in).

        *handles* maps operation names to :class:`OpSpec` instances, or to
        dictionaries that will be converted to one.

        *immediate* names operations, from those in *handles*, that the
        dispatcher should run outside of the session's serialized queue.
        Operations that must reach a busy session, such as an interrupt,
        belong here.

        Descriptors are immutable.
    """

    __slots__ = ('requires', 'expects', 'handles', 'immediate')

    def __init__(self, requires=(), expects=(), handles=None, immediate=()):

        if isinstance(requires, (str, Middleware)):
            requires = (requires,)
        if isinstance(expects, (str, Middleware)):
            expects = (expects,)
        if isinstance(immediate, str):
            immediate = (immediate,)

        specs = dict()
        if handles is not None:
            for op, spec in handles.items():
                if isinstance(spec, OpSpec):
                    pass
                elif spec is None:
                    spec = OpSpec()
                else:
                    spec = OpSpec.from_dict(spec)
                specs[op] = spec

        immediate = frozenset(immediate)
        unhandled = immediate - set(specs)
        if unhandled:
            raise ValueError('immediate operations not handled: ' + ', '.join(sorted(unhandled)))

        for ref in tuple(requires) + tuple(expects):
            _check_ref(ref)

        object.__setattr__(self, 'requires', frozenset(requires))
        object.__setattr__(self, 'expects', frozenset(expects))
        object.__setattr__(self, 'handles', types.MappingProxyType(specs))
        object.__setattr__(self, 'immediate', immediate)


    def __setattr__(self, name, value):
        raise AttributeError('Descriptor instances are immutable')


    def __repr__(self):
        requires = sorted(_ref_name(ref) for ref in self.requires)
        expects = sorted(_ref_name(ref) for ref in self.expects)
        handles = sorted(self.handles)
        return 'Descriptor(requires=%r, expects=%r, handles=%r)' % (requires, expects, handles)


    def ops(self):
        return tuple(self.handles.keys())


# end of class Descriptor



class Middleware:
    """ A composable request handling unit. The :func:`handle` method
        receives a :class:`mrepl.protocol.Message` and the *next* handler in
        the chain; a middleware that does not handle the message's operation
        passes it along by calling ``next(message)``.

        Subclasses override :func:`handle` and set a class-level *name* and
        *descriptor*; alternatively, a plain function with the same signature
        can be supplied as the *handle* argument. The identity of a
        :class:`Middleware` instance is stable, it is used as a node in the
        dependency graph and as the target of direct references.
    """

    name = None
    descriptor = None

    def __init__(self, name=None, handle=None, descriptor=None):

        if name is not None:
            self.name = name
        if self.name is None:
            self.name = type(self).__name__.lower()

        if handle is not None:
            self._handle = handle

        if descriptor is not None:
            self.descriptor = descriptor


    def __repr__(self):
        return '<middleware ' + str(self.name) + '>'


    def handle(self, message, next):
        try:
            handle = self._handle
        except AttributeError:
            next(message)
        else:
            handle(message, next)


# end of class Middleware


# The default descriptor: no ordering constraints, no operations handled.

Middleware.descriptor = Descriptor()



def _frozen(mapping):

    if mapping is None:
        mapping = dict()

    frozen = dict()
    for key, value in mapping.items():
        frozen[str(key)] = str(value)

    return types.MappingProxyType(frozen)



def _check_ref(ref):

    if isinstance(ref, (str, Middleware)):
        return

    raise TypeError('references must be an operation name or a Middleware, not ' + repr(ref))



def _ref_name(ref):

    if isinstance(ref, Middleware):
        return '#' + str(ref.name)
    return ref


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
