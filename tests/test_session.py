import concurrent.futures
import os
import pytest
import threading
import time

from mrepl.protocol import Message, fields
from mrepl.session import InputBuffer, SessionNotFound, SessionStore, WorkQueue
from mrepl.session import copy_bindings
from mrepl.transport import LocalTransport


def test_create_unique():

    store = SessionStore()

    first = store.create()
    second = store.create()

    assert first.id != second.id
    assert sorted(store.ids()) == sorted((first.id, second.id))
    assert store.lookup(first.id) is first


def test_defaults_snapshot():

    store = SessionStore({'answer': 42})
    before = store.create()

    store.bind_default('question', 'unknown')
    after = store.create()

    assert before.bindings == {'answer': 42}
    assert after.bindings == {'answer': 42, 'question': 'unknown'}


def test_clone_isolation():

    store = SessionStore()
    original = store.create()
    original.bindings['x'] = 1
    original.bindings['items'] = [1, 2, 3]

    clone = store.clone(original.id)
    clone.bindings['x'] = 2
    clone.bindings['items'].append(4)

    assert original.bindings['x'] == 1
    assert original.bindings['items'] == [1, 2, 3]
    assert clone.bindings['x'] == 2
    assert clone.created_from == original.id

    original.bindings['y'] = 'later'
    assert 'y' not in clone.bindings


def test_clone_shares_uncopyable_values():

    bindings = {'os': os, 'numbers': [1, 2]}
    copied = copy_bindings(bindings)

    assert copied['os'] is os
    assert copied['numbers'] == [1, 2]
    assert copied['numbers'] is not bindings['numbers']


def test_unknown_sessions():

    store = SessionStore()

    with pytest.raises(SessionNotFound):
        store.clone('no-such-session')

    with pytest.raises(SessionNotFound):
        store.lookup('no-such-session')

    # SessionNotFound is also a KeyError.

    with pytest.raises(KeyError):
        store.close('no-such-session')


def test_close_twice():

    store = SessionStore()
    session = store.create()

    store.close(session.id)
    assert session.closed
    assert session.id not in store

    with pytest.raises(SessionNotFound) as caught:
        store.close(session.id)

    assert caught.value.session_id == session.id

    with pytest.raises(SessionNotFound):
        store.lookup(session.id)


def test_ephemeral_not_registered():

    store = SessionStore({'a': 1})
    session = store.ephemeral()

    assert session.id not in store
    assert session.bindings == {'a': 1}


def test_input_buffer():

    buffer = InputBuffer()
    buffer.write('one\ntwo\nthree')

    assert buffer.readline() == 'one\n'
    assert buffer.readline(2) == 'tw'
    assert buffer.readline() == 'o\n'
    assert buffer.read() == 'three'

    buffer.close()
    assert buffer.readline() == ''
    assert buffer.read() == ''

    with pytest.raises(ValueError):
        buffer.write('too late')


def test_input_buffer_requests_input():

    buffer = InputBuffer()
    requests = list()

    def requester():
        requests.append(True)
        threading.Timer(0.05, buffer.write, ('typed\n',)).start()

    with buffer.requesting(requester):
        line = buffer.readline()

    assert line == 'typed\n'
    assert len(requests) == 1


def test_work_queue_serializes():

    executor = concurrent.futures.ThreadPoolExecutor(max_workers=4)
    queue = WorkQueue()

    events = list()
    finishers = list()
    second_ran = threading.Event()

    def first(finish):
        events.append('first')
        finishers.append(finish)

    def second(finish):
        events.append('second')
        second_ran.set()
        finish()

    queue.submit(executor, first)
    queue.submit(executor, second)

    # The first item returned without finishing; the second must wait.

    time.sleep(0.1)
    assert events == ['first']
    assert second_ran.is_set() == False

    finishers[0]()
    assert second_ran.wait(2)
    assert events == ['first', 'second']

    # Finishing twice has no further effect.

    finishers[0]()

    executor.shutdown()


def test_work_queue_advances_after_exception():

    executor = concurrent.futures.ThreadPoolExecutor(max_workers=2)
    queue = WorkQueue()
    ran = threading.Event()

    def broken(finish):
        raise RuntimeError('broken')

    def fine(finish):
        ran.set()
        finish()

    queue.submit(executor, broken)
    queue.submit(executor, fine)

    assert ran.wait(2)
    executor.shutdown()


def test_interrupt_idle_and_mismatch():

    store = SessionStore()
    session = store.create()

    assert session.interrupt() == fields.SESSION_IDLE

    running = Message({fields.OP: 'eval', fields.ID: 'abc'})
    session.begin(running)

    assert session.interrupt('xyz') == fields.INTERRUPT_ID_MISMATCH

    session.end(running)
    assert session.interrupt() == fields.SESSION_IDLE


def test_interrupt_calls_cancel_hook():

    store = SessionStore()
    session = store.create()
    cancelled = list()

    running = Message({fields.OP: 'eval', fields.ID: 'abc'})
    running.defer(cancel=lambda: cancelled.append(True))

    session.begin(running)
    session.leave(running)

    assert session.interrupt('abc') == fields.INTERRUPTED
    assert cancelled == [True]

    # At most once per execution.

    assert session.interrupt('abc') == fields.INTERRUPTED
    assert cancelled == [True]



def test_interrupt_completes_deferred_without_hook():

    store = SessionStore()
    session = store.create()
    transport = LocalTransport()

    running = Message({fields.OP: 'later', fields.ID: 'abc'}, transport)
    running.defer()

    session.begin(running)
    session.leave(running)

    assert session.interrupt() == fields.INTERRUPTED
    assert running.completed

    responses = transport.of('abc')
    assert len(responses) == 1
    assert responses[0].status == [fields.INTERRUPTED, fields.DONE]


def test_concurrent_close():

    store = SessionStore()
    session = store.create()

    barrier = threading.Barrier(8)
    results = list()

    def close():
        barrier.wait()
        try:
            store.close(session.id)
        except SessionNotFound:
            results.append('missing')
        else:
            results.append('closed')

    threads = [threading.Thread(target=close) for count in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    assert sorted(results) == ['closed'] + ['missing'] * 7
    assert store.ids() == []
    assert session.closed


def test_concurrent_create_clone_close():

    store = SessionStore({'seed': [1, 2, 3]})
    root = store.create()
    barrier = threading.Barrier(8)

    def churn():
        barrier.wait()
        kept = list()
        for count in range(50):
            created = store.create()
            cloned = store.clone(root.id)
            store.close(created.id)
            kept.append(cloned.id)
        return kept

    with concurrent.futures.ThreadPoolExecutor(max_workers=8) as executor:
        futures = [executor.submit(churn) for count in range(8)]
        kept = [session_id for future in futures for session_id in future.result(10)]

    assert len(kept) == 400
    assert len(set(kept)) == 400
    assert sorted(store.ids()) == sorted(kept + [root.id])

    for session_id in kept:
        session = store.lookup(session_id)
        assert session.created_from == root.id
        assert session.bindings['seed'] == [1, 2, 3]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
