""" Serialization and concurrency guarantees of the dispatcher, exercised
    through an in-process server with a few purpose-built middleware.
"""

import threading
import time

from mrepl.middleware import Descriptor, Middleware
from mrepl.protocol import fields

from harness import combined


class Gate(Middleware):
    """ ``block`` waits on an event before completing; ``record`` records the
        order in which it ran; ``later`` defers completion to the test;
        ``explode`` raises.
    """

    name = 'gate'
    descriptor = Descriptor(requires='clone', handles={'block': None, 'record': None, 'later': None, 'explode': None})

    def __init__(self):

        Middleware.__init__(self)
        self.release = threading.Event()
        self.entered = threading.Event()
        self.ran = list()
        self.deferred = list()


    def handle(self, message, next):

        op = message.op

        if op == 'block':
            self.entered.set()
            self.release.wait(5)
            self.ran.append(message['tag'])
            message.respond({fields.STATUS: fields.DONE})

        elif op == 'record':
            self.ran.append(message['tag'])
            message.respond({fields.STATUS: fields.DONE})

        elif op == 'later':
            message.defer()
            self.deferred.append(message)
            self.ran.append(message['tag'])

        elif op == 'explode':
            raise RuntimeError('kaboom')

        else:
            next(message)



def test_same_session_is_serialized(local):

    gate = Gate()
    server = local([gate])
    session = server.clone()

    blocking = server.send('block', session=session, tag='first')
    assert gate.entered.wait(2)

    queued = server.send('record', session=session, tag='second')

    time.sleep(0.2)
    assert gate.ran == []
    assert server.transport.of(queued.id) == []

    gate.release.set()

    server.wait(blocking)
    server.wait(queued)
    assert gate.ran == ['first', 'second']


def test_arrival_order_within_session(local):

    gate = Gate()
    server = local([gate])
    session = server.clone()

    requests = list()
    for tag in range(20):
        requests.append(server.send('record', session=session, tag=tag))

    for request in requests:
        server.wait(request)

    assert gate.ran == list(range(20))


def test_sessions_run_concurrently(local):

    gate = Gate()
    server = local([gate])

    busy = server.clone()
    other = server.clone()

    blocking = server.send('block', session=busy, tag='busy')
    assert gate.entered.wait(2)

    # The other session is not held up by the blocked one.

    server.call('record', session=other, tag='other', timeout=2)
    assert gate.ran == ['other']

    gate.release.set()
    server.wait(blocking)
    assert gate.ran == ['other', 'busy']


def test_exception_releases_session(local):

    gate = Gate()
    server = local([gate])
    session = server.clone()

    exploded = server.send('explode', session=session)
    queued = server.send('record', session=session, tag='after')

    responses = combined(server.wait(exploded))
    assert responses['status'] == [fields.ERROR, fields.DONE]
    assert 'kaboom' in responses['err']

    server.wait(queued)
    assert gate.ran == ['after']


def test_deferred_completion_holds_session(local):

    gate = Gate()
    server = local([gate])
    session = server.clone()

    later = server.send('later', session=session, tag='later')
    queued = server.send('record', session=session, tag='record')

    time.sleep(0.2)
    assert gate.ran == ['later']
    assert server.transport.of(queued.id) == []

    # Responding without done does not complete it either.

    gate.deferred[0].respond({'progress': 1})
    time.sleep(0.1)
    assert gate.ran == ['later']

    gate.deferred[0].respond({fields.STATUS: fields.DONE})

    server.wait(queued)
    assert gate.ran == ['later', 'record']
    assert later.completed


def test_unknown_session(local):

    server = local()
    responses = server.call('eval', session='no-such-session', code='1')

    assert len(responses) == 1
    assert responses[0].status == [fields.ERROR, fields.UNKNOWN_SESSION, fields.DONE]


def test_unknown_op(local):

    server = local()
    session = server.clone()

    responses = server.call('no-such-op', session=session)

    assert len(responses) == 1
    assert responses[0].status == [fields.ERROR, fields.UNKNOWN_OP, fields.DONE]
    assert responses[0][fields.OP] == 'no-such-op'


def test_unknown_op_without_session(local):

    server = local()
    responses = server.call('no-such-op')

    assert len(responses) == 1
    assert fields.UNKNOWN_OP in responses[0].status


def test_closed_session_rejects_new_work(local):

    gate = Gate()
    server = local([gate])
    session = server.clone()

    closed = server.call('close', session=session)
    assert closed[-1].status == [fields.SESSION_CLOSED, fields.DONE]

    responses = server.call('record', session=session, tag='never')
    assert responses[-1].status == [fields.ERROR, fields.UNKNOWN_SESSION, fields.DONE]
    assert gate.ran == []


def test_use_switches_chain(local):

    server = local()
    session = server.clone()

    gate = Gate()
    server.stack.add([gate])
    assert server.dispatcher.chain is server.stack.chain

    server.call('record', session=session, tag='switched')
    assert gate.ran == ['switched']


def test_interrupt_as_handler_returns(local):

    gate = Gate()
    server = local([gate])
    session_id = server.clone()
    session = server.store.lookup(session_id)

    leaving = threading.Event()
    go = threading.Event()
    calls = list()
    original = session.leave

    def leave(message, caught=False):
        # Hold the worker after the handler returned, before the session
        # has let go of its thread.
        calls.append(caught)
        if len(calls) == 1:
            leaving.set()
            while go.is_set() == False:
                time.sleep(0.001)
        original(message, caught)

    session.leave = leave

    first = server.send('record', session=session_id, tag='first')
    assert leaving.wait(2)

    assert session.interrupt() == fields.INTERRUPTED
    go.set()

    second = server.send('record', session=session_id, tag='second')
    server.wait(second)

    responses = server.wait(first)
    assert combined(responses)['status'] == [fields.DONE]
    assert calls == [False, True]
    assert gate.ran == ['first', 'second']

    assert session._lock.locked() == False
    assert server.call('interrupt', session=session_id)[-1].status == [fields.SESSION_IDLE, fields.DONE]


def test_interrupt_before_handler_runs(local):

    gate = Gate()
    server = local([gate])
    session_id = server.clone()
    session = server.store.lookup(session_id)

    begun = threading.Event()
    go = threading.Event()
    original = session.begin

    def begin(message):
        execution = original(message)
        if message.op == 'record' and message['tag'] == 'first':
            begun.set()
            while go.is_set() == False:
                time.sleep(0.001)
        return execution

    session.begin = begin

    first = server.send('record', session=session_id, tag='first')
    assert begun.wait(2)

    assert session.interrupt() == fields.INTERRUPTED
    go.set()

    responses = server.wait(first)
    assert combined(responses)['status'] == [fields.INTERRUPTED, fields.DONE]

    server.call('record', session=session_id, tag='second')
    assert gate.ran == ['second']


def test_interrupt_deferred_without_hook(local):

    gate = Gate()
    server = local([gate])
    session = server.clone()

    later = server.send('later', session=session, tag='later')
    queued = server.send('record', session=session, tag='record')

    expiration = time.time() + 2
    while gate.ran == [] and time.time() < expiration:
        time.sleep(0.01)

    responses = server.call('interrupt', session=session)
    assert responses[-1].status == [fields.DONE]

    result = combined(server.wait(later))
    assert result['status'] == [fields.INTERRUPTED, fields.DONE]

    server.wait(queued)
    assert gate.ran == ['later', 'record']


def test_immediate_ops_with_every_worker_busy(local):

    gate = Gate()
    server = local([gate], workers=2)

    first = server.clone()
    second = server.clone()

    server.send('block', session=first, tag='first')
    server.send('block', session=second, tag='second')

    assert gate.entered.wait(2)
    time.sleep(0.1)

    responses = server.call('describe', timeout=2)
    assert 'block' in responses[-1]['ops']

    responses = server.call('interrupt', {fields.SESSION: first, 'interrupt-id': 'not-it'}, timeout=2)
    assert responses[-1].status == [fields.ERROR, fields.INTERRUPT_ID_MISMATCH, fields.DONE]

    gate.release.set()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
