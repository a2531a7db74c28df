import pytest

from mrepl.middleware import Descriptor, Middleware, OpSpec, Registry, union


def test_descriptor_defaults():

    descriptor = Descriptor()

    assert descriptor.requires == frozenset()
    assert descriptor.expects == frozenset()
    assert dict(descriptor.handles) == dict()
    assert descriptor.immediate == frozenset()


def test_descriptor_is_immutable():

    descriptor = Descriptor(handles={'x': None})

    with pytest.raises(AttributeError):
        descriptor.requires = frozenset(('y',))

    with pytest.raises(TypeError):
        descriptor.handles['y'] = OpSpec()


def test_descriptor_normalizes():

    other = Middleware('other')
    descriptor = Descriptor(requires='clone', expects=other, handles={'x': {'doc': 'Does x.', 'requires': {'a': 'An a.'}}, 'y': None})

    assert descriptor.requires == frozenset(('clone',))
    assert descriptor.expects == frozenset((other,))
    assert descriptor.handles['x'].doc == 'Does x.'
    assert dict(descriptor.handles['x'].requires) == {'a': 'An a.'}
    assert descriptor.handles['y'] == OpSpec()


def test_descriptor_rejects_bad_input():

    with pytest.raises(TypeError):
        Descriptor(requires=(42,))

    with pytest.raises(ValueError):
        Descriptor(handles={'x': None}, immediate=('y',))


def test_opspec_to_dict():

    spec = OpSpec(doc='Hello.', requires={'a': 'An a.'}, returns={'b': 'A b.'})
    rendered = spec.to_dict()

    assert rendered == {'doc': 'Hello.', 'requires': {'a': 'An a.'}, 'optional': {}, 'returns': {'b': 'A b.'}}
    assert OpSpec.from_dict(rendered) == spec


def test_middleware_name():

    class Fancy(Middleware):
        pass

    assert Fancy().name == 'fancy'
    assert Fancy('renamed').name == 'renamed'


def test_register_order():

    a = Middleware('a')
    b = Middleware('b')
    c = Middleware('c')

    registry = Registry([b, a])
    registry.register(c)

    assert list(registry) == [b, a, c]
    assert len(registry) == 3

    # Registering again replaces the descriptor, not the position.

    replacement = Descriptor(handles={'x': None})
    registry.register(b, replacement)

    assert list(registry) == [b, a, c]
    assert registry.descriptor(b) is replacement


def test_register_type_checks():

    registry = Registry()

    with pytest.raises(TypeError):
        registry.register('not middleware')

    with pytest.raises(TypeError):
        registry.register(Middleware('a'), 'not a descriptor')


def test_unregister():

    a = Middleware('a')
    registry = Registry([a])

    registry.unregister(a)
    assert a not in registry

    with pytest.raises(KeyError):
        registry.unregister(a)


def test_handlers_of():

    a = Middleware('a', descriptor=Descriptor(handles={'x': None}))
    b = Middleware('b', descriptor=Descriptor(handles={'y': None}))
    c = Middleware('c', descriptor=Descriptor(handles={'x': None}))

    registry = Registry([a, b, c])

    assert registry.handlers_of('x') == [a, c]
    assert registry.handlers_of('y') == [b]
    assert registry.handlers_of('z') == []


def test_ops_first_registered_wins():

    first = OpSpec(doc='First.')
    second = OpSpec(doc='Second.')

    a = Middleware('a', descriptor=Descriptor(handles={'x': first}))
    b = Middleware('b', descriptor=Descriptor(handles={'x': second, 'y': None}))

    ops = Registry([a, b]).ops()
    assert ops['x'] is first
    assert sorted(ops.keys()) == ['x', 'y']


def test_union():

    a = Middleware('a')
    b = Middleware('b')
    c = Middleware('c')

    defaults = Registry([a, b])
    merged = union(defaults, [b, c])

    assert list(merged) == [a, b, c]

    # The inputs are not modified.

    assert list(defaults) == [a, b]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
