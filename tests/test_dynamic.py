""" Changing the middleware of a running server with the add-middleware,
    swap-middleware, and ls-middleware operations.
"""

import pytest

from mrepl.middleware import CyclicDependency
from mrepl.protocol import fields
from mrepl.server import Stack, resolve

import middleware_samples


default_names = ['session', 'describe', 'print', 'stdin', 'load-file', 'eval', 'dynamic-loader']


def test_ls_middleware(local):

    server = local()
    response = server.call('ls-middleware')[-1]

    assert response['middleware'] == default_names


def test_add_middleware(local):

    server = local()
    session = server.clone()

    response = server.call('add-middleware', middleware=['middleware_samples:Shout'])[-1]
    assert response.status == [fields.DONE]
    assert response['middleware'] == default_names + ['shout']

    response = server.call('shout', session=session, text='hey')[-1]
    assert response['text'] == 'HEY'

    # Adding it again changes nothing.

    response = server.call('add-middleware', middleware=['middleware_samples:Shout'])[-1]
    assert response['middleware'] == default_names + ['shout']

    ops = server.call('describe')[-1]['ops']
    assert 'shout' in ops


def test_swap_middleware(local):

    server = local()
    session = server.clone()

    server.call('add-middleware', middleware=['middleware_samples:Shout'])
    response = server.call('swap-middleware', middleware=['middleware_samples:Whisper'])[-1]

    assert response['middleware'] == default_names + ['whisper']

    response = server.call('whisper', session=session, text='HEY')[-1]
    assert response['text'] == 'hey'

    response = server.call('shout', session=session, text='hey')[-1]
    assert fields.UNKNOWN_OP in response.status


def test_unresolved_middleware(local):

    server = local()

    references = ['no_such_module:Thing', 'middleware_samples:Missing', 'middleware_samples:not_middleware', 'no-colon']
    response = server.call('add-middleware', middleware=references)[-1]

    assert response.status == [fields.ERROR, 'middleware-error', fields.DONE]
    assert response['unresolved-middleware'] == references

    assert server.stack.names() == default_names


def test_cycle_rejected(local):

    server = local()
    session = server.clone()
    server.call('add-middleware', middleware=['middleware_samples:Shout'])

    before = server.stack.chain

    references = ['middleware_samples:First', 'middleware_samples:Second']
    response = server.call('add-middleware', middleware=references)[-1]

    assert response.status == [fields.ERROR, 'middleware-error', fields.DONE]
    assert 'cyclic' in response['err']

    # The previous chain is still in use.

    assert server.stack.chain is before
    assert server.dispatcher.chain is before
    assert server.stack.names() == default_names + ['shout']

    response = server.call('shout', session=session, text='still here')[-1]
    assert response['text'] == 'STILL HERE'


def test_no_middleware_slot(local):

    server = local()
    response = server.call('add-middleware')[-1]

    assert response.status == [fields.ERROR, 'no-middleware', fields.DONE]


def test_resolve():

    shout = resolve('middleware_samples:Shout')
    assert isinstance(shout, middleware_samples.Shout)
    assert resolve(shout) is shout

    with pytest.raises(ImportError):
        resolve('no_such_module:Thing')

    with pytest.raises(AttributeError):
        resolve('middleware_samples:Missing')

    with pytest.raises(TypeError):
        resolve('middleware_samples:not_middleware')

    with pytest.raises(ValueError):
        resolve('middleware_samples')


def test_stack_resolve_is_cached():

    stack = Stack()

    first, unresolved = stack.resolve(['middleware_samples:Shout'])
    second, unresolved = stack.resolve(['middleware_samples:Shout'])

    assert first[0] is second[0]
    assert unresolved == []


def test_stack_listeners_and_rollback():

    stack = Stack()
    chains = list()
    stack.listeners.append(chains.append)

    shout, unresolved = stack.resolve(['middleware_samples:Shout'])
    stack.add(shout)

    assert len(chains) == 1
    assert stack.names() == ['shout']

    cyclic, unresolved = stack.resolve(['middleware_samples:First', 'middleware_samples:Second'])

    with pytest.raises(CyclicDependency):
        stack.add(cyclic)

    assert len(chains) == 1
    assert stack.names() == ['shout']
    assert stack.extra == shout


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
