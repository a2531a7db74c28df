""" Sessions are isolated, serialized execution contexts. Each one holds its
    own variable bindings, a buffer for pending standard input, and a queue
    of work waiting to run; the :class:`SessionStore` is the concurrency-safe
    registry of every live session.
"""

import collections
import copy
import ctypes
import logging
import threading
import time
import uuid

from .protocol import fields

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    """ The referenced session does not exist, or has already been closed.
    """

    def __init__(self, session_id):
        KeyError.__init__(self, session_id)
        self.session_id = session_id


    def __str__(self):
        return 'unknown session: ' + repr(self.session_id)



class Interrupted(BaseException):
    """ Raised inside a running operation when its session is interrupted.
        This derives from :class:`BaseException` so that evaluated code
        catching :class:`Exception` does not swallow it.
    """



class InputBuffer:
    """ Pending standard input for a session. Text arrives via :func:`write`
        (the ``stdin`` operation) and is consumed by :func:`readline` and
        :func:`read`, which block until enough text is available. While a
        reader is blocked on an empty buffer the *requester* callback, if
        any, is invoked so that the client can be asked for more input.
    """

    # Readers run on a session's worker thread, where an asynchronous
    # Interrupted may arrive at any point; the condition is only ever held
    # inside a with block, and waits use a timeout so the exception is
    # delivered promptly.

    poll_interval = 0.1

    def __init__(self):

        self._buffer = ''
        self._closed = False
        self._requester = None
        self._condition = threading.Condition()


    @property
    def closed(self):
        return self._closed


    def write(self, text):
        """ Append *text* to the buffer and wake any blocked reader.
        """

        with self._condition:
            if self._closed:
                raise ValueError('input buffer is closed')

            self._buffer += text
            self._condition.notify_all()


    def close(self):
        """ Discard any buffered text; blocked and future readers receive
            end-of-file.
        """

        with self._condition:
            self._closed = True
            self._buffer = ''
            self._condition.notify_all()


    def wake(self):
        with self._condition:
            self._condition.notify_all()


    def pending(self):
        return len(self._buffer)


    def requesting(self, requester):
        """ Return a context manager that installs *requester* as the
            callback used to ask for more input, restoring the previous
            callback on exit.
        """

        return _Requesting(self, requester)


    def readline(self, size=-1):

        def extract():
            index = self._buffer.find('\n')
            if index == -1:
                index = len(self._buffer)
            else:
                index += 1

            if size is not None and size >= 0:
                index = min(index, size)

            line = self._buffer[:index]
            self._buffer = self._buffer[index:]
            return line

        return self._take(lambda: '\n' in self._buffer, extract)


    def read(self, size=-1):

        def extract():
            count = size
            if count is None or count < 0:
                count = len(self._buffer)

            text = self._buffer[:count]
            self._buffer = self._buffer[count:]
            return text

        return self._take(lambda: self._buffer != '', extract)


    def _take(self, satisfied, extract):
        """ Block until *satisfied* returns True or the buffer is closed,
            then return the result of *extract*; both are called with the
            condition held. The requester is invoked, without the condition
            held, at most once per call and only if the buffer is empty.
        """

        requested = False

        while True:
            with self._condition:
                if satisfied() or self._closed:
                    return extract()

                requester = self._requester

                if self._buffer != '' or requested or requester is None:
                    self._condition.wait(self.poll_interval)
                    continue

            requested = True
            requester()


# end of class InputBuffer



class _Requesting:

    def __init__(self, buffer, requester):
        self.buffer = buffer
        self.requester = requester
        self.previous = None


    def __enter__(self):
        self.previous = self.buffer._requester
        self.buffer._requester = self.requester
        return self.buffer


    def __exit__(self, *exc_info):
        self.buffer._requester = self.previous



class Execution:
    """ The operation currently running in a session: the *message* being
        handled and, while its handler is on the stack, the identity of the
        thread running it. An execution is interrupted at most once;
        *raised* stays None until the interrupting thread has decided
        whether an exception was sent to *thread*.
    """

    def __init__(self, message, thread):

        self.message = message
        self.thread = thread
        self.interrupted = False
        self.raised = None


    def __repr__(self):
        return 'Execution(%r, thread=%r)' % (self.message.id, self.thread)


# end of class Execution



class WorkQueue:
    """ A FIFO of pending work for one session, with at most one item active
        at a time. Work items are callables accepting a single *finish*
        argument; an item is complete when it calls *finish*, which may
        happen after the item itself has returned. Only then is the next item
        handed to the executor.
    """

    def __init__(self):

        self._pending = collections.deque()
        self._active = False
        self._lock = threading.Lock()


    def __len__(self):
        return len(self._pending)


    @property
    def active(self):
        return self._active


    def submit(self, executor, work):
        """ Queue *work* to run via *executor* (a
            :class:`concurrent.futures.Executor`) once all previously
            submitted work is complete.
        """

        with self._lock:
            self._pending.append((executor, work))

            if self._active:
                return

            self._active = True

        self._schedule(executor)


    def _schedule(self, executor):

        try:
            executor.submit(self._next)
        except RuntimeError:
            # The executor has been shut down; nothing queued here will ever
            # run.
            logger.warning('executor shut down, discarding %d queued item(s)', len(self._pending))
            with self._lock:
                self._pending.clear()
                self._active = False


    def _next(self):

        with self._lock:
            executor, work = self._pending.popleft()

        finish = _Finish(self._advance)

        try:
            work(finish)
        except BaseException:
            finish()
            raise


    def _advance(self):

        with self._lock:
            if len(self._pending) == 0:
                self._active = False
                return

            executor = self._pending[0][0]

        self._schedule(executor)


# end of class WorkQueue



class _Finish:
    """ One-shot completion callback for a single work item.
    """

    def __init__(self, callback):
        self.callback = callback
        self.called = False
        self.lock = threading.Lock()


    def __call__(self):
        with self.lock:
            called = self.called
            self.called = True

        if called == False:
            self.callback()



class Session:
    """ An isolated execution context.

        :ivar id: Unique identifier for this session.
        :ivar bindings: The variable bindings for this session; evaluation
                        uses this dictionary as its global namespace.
        :ivar created_from: The id of the session this one was cloned from,
                            if any.
        :ivar input: The :class:`InputBuffer` for pending standard input.
        :ivar queue: The :class:`WorkQueue` serializing requests.
    """

    # How long leave() gives an exception already sent to the worker thread
    # to arrive.

    settle_interval = 0.05

    def __init__(self, bindings=None, created_from=None, session_id=None):

        if session_id is None:
            session_id = str(uuid.uuid4())

        if bindings is None:
            bindings = dict()

        self.id = session_id
        self.bindings = bindings
        self.created_from = created_from
        self.input = InputBuffer()
        self.queue = WorkQueue()

        self._lock = threading.Lock()
        self._current = None
        self._closed = False


    def __repr__(self):
        return 'Session(' + repr(self.id) + ')'


    @property
    def closed(self):
        return self._closed


    @property
    def current(self):
        return self._current


    def begin(self, message):
        """ Mark *message* as the operation running in this session, on the
            calling thread. From here until :func:`leave` the calling thread
            may receive :class:`Interrupted` at any point.
        """

        execution = Execution(message, threading.get_ident())

        with self._lock:
            self._current = execution

        return execution


    def leave(self, message, caught=False):
        """ The handler for *message* has returned; any further activity
            for it (a deferred completion) is not on a worker thread, and
            can no longer be interrupted by raising an exception there.
            *caught* is True if the caller already received the
            :class:`Interrupted` exception for this execution.

            No lock is taken here. If an interrupt is racing with the end of
            the handler this waits for the interrupting thread to finish;
            an exception it sent is raised out of this method, and the
            caller is expected to call it again with *caught* set.
        """

        execution = self._current
        if execution is None or execution.message is not message:
            return

        execution.thread = None

        # interrupt() sets the flag before it reads the thread, and this
        # clears the thread before it reads the flag, so at least one side
        # sees the other's write.
        if execution.interrupted == False:
            return

        while execution.raised is None:
            time.sleep(0.001)

        if execution.raised and caught == False:
            # Either it arrives here, or evaluated code already swallowed it.
            time.sleep(self.settle_interval)


    def end(self, message):
        """ *message* has completed; the session is idle again.
        """

        with self._lock:
            execution = self._current
            if execution is not None and execution.message is message:
                self._current = None


    def interrupt(self, interrupt_id=None):
        """ Halt the operation currently running in this session. If
            *interrupt_id* is specified, only an operation for the message
            with that id is interrupted. Returns one of the status values
            ``interrupted``, ``session-idle``, or ``interrupt-id-mismatch``.

            The cancellation hook the running message registered via
            :func:`mrepl.protocol.Message.defer`, if any, is called. Failing
            that, :class:`Interrupted` is raised in the thread running the
            operation; a deferred operation whose handler has already
            returned is completed with an ``interrupted`` status instead.
        """

        hook = None
        abandoned = None

        with self._lock:
            execution = self._current

            if execution is None:
                return fields.SESSION_IDLE

            message = execution.message

            if interrupt_id is not None and interrupt_id != message.id:
                return fields.INTERRUPT_ID_MISMATCH

            if execution.interrupted == False:
                execution.interrupted = True
                raised = False

                try:
                    hook = message.cancel

                    if hook is None:
                        thread = execution.thread
                        if thread is not None:
                            raised = _async_raise(thread, Interrupted)
                        elif message.deferred:
                            abandoned = message
                finally:
                    execution.raised = raised

        if hook is not None:
            hook()

        if abandoned is not None and abandoned.completed == False:
            abandoned.respond({fields.STATUS: (fields.INTERRUPTED, fields.DONE)})

        # Wake a reader blocked on input so the exception is seen promptly.
        self.input.wake()

        return fields.INTERRUPTED


    def close(self):
        """ Release the resources owned by this session: buffered input is
            discarded and any running operation is interrupted. Only the
            :class:`SessionStore` should call this method.
        """

        with self._lock:
            already = self._closed
            self._closed = True

        if already:
            return

        self.input.close()
        self.interrupt()


# end of class Session



class SessionStore:
    """ Registry of live sessions. New sessions start with a snapshot of the
        *defaults* bindings in effect when they are created.
    """

    def __init__(self, defaults=None):

        if defaults is None:
            defaults = dict()

        self.defaults = dict(defaults)
        self._sessions = dict()
        self._lock = threading.Lock()


    def __contains__(self, session_id):
        return session_id in self._sessions


    def __len__(self):
        return len(self._sessions)


    def bind_default(self, name, value):
        """ Add or replace an ambient default binding. Existing sessions are
            not affected.
        """

        with self._lock:
            self.defaults[name] = value


    def create(self, created_from=None):
        """ Allocate and register a new :class:`Session`, returning it.
        """

        with self._lock:
            bindings = copy_bindings(self.defaults)
            session = Session(bindings, created_from)
            self._sessions[session.id] = session

        logger.debug('created session %s', session.id)
        return session


    def ephemeral(self):
        """ Return a new, unregistered :class:`Session` for a message that
            did not name one. It lives only as long as that message.
        """

        with self._lock:
            bindings = copy_bindings(self.defaults)

        return Session(bindings)


    def clone(self, session_id):
        """ Register and return a new :class:`Session` whose bindings are a
            copy of those in the session identified by *session_id*, as of
            right now. The two sessions are independent afterwards.
        """

        source = self.lookup(session_id)

        with source._lock:
            snapshot = dict(source.bindings)

        session = Session(copy_bindings(snapshot), created_from=source.id)

        with self._lock:
            if source.id not in self._sessions:
                raise SessionNotFound(session_id)
            self._sessions[session.id] = session

        logger.debug('cloned session %s from %s', session.id, source.id)
        return session


    def close(self, session_id):
        """ Remove the session identified by *session_id* and release its
            resources. Closing an unknown or already closed session raises
            :class:`SessionNotFound`.
        """

        with self._lock:
            try:
                session = self._sessions.pop(session_id)
            except KeyError:
                raise SessionNotFound(session_id) from None

        session.close()
        logger.debug('closed session %s', session_id)
        return session


    def lookup(self, session_id):

        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None


    def ids(self):
        """ Return a list of the identifiers of every live session.
        """

        with self._lock:
            return list(self._sessions.keys())


    def close_all(self):

        for session_id in self.ids():
            try:
                self.close(session_id)
            except SessionNotFound:
                continue


# end of class SessionStore



def copy_bindings(bindings):
    """ Return a value copy of the *bindings* dictionary. Each value is
        deep-copied where possible; values that cannot be copied, such as
        modules, are shared by reference, as is the ``__builtins__``
        namespace.
    """

    copied = dict()
    memo = dict()

    for name, value in bindings.items():
        if name == '__builtins__':
            copied[name] = value
            continue

        try:
            copied[name] = copy.deepcopy(value, memo)
        except (TypeError, copy.Error):
            copied[name] = value

    return copied



def _async_raise(thread, exception):
    """ Raise *exception* in the thread identified by *thread*. The exception
        is delivered the next time that thread executes Python bytecode.
        Returns True if it was sent.
    """

    affected = ctypes.pythonapi.PyThreadState_SetAsyncExc(ctypes.c_ulong(thread), ctypes.py_object(exception))

    if affected == 0:
        logger.warning('cannot interrupt thread %d, it no longer exists', thread)
        return False
    elif affected > 1:
        # Should not happen; undo the damage.
        ctypes.pythonapi.PyThreadState_SetAsyncExc(ctypes.c_ulong(thread), None)
        raise SystemError('PyThreadState_SetAsyncExc affected %d threads' % (affected))

    return True


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
