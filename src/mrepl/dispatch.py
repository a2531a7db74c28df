""" The :class:`Dispatcher` routes every inbound message to its session and
    runs the composed handler under that session's serialization guarantee:
    messages for the same session are handled one at a time, in arrival
    order, while messages for different sessions run concurrently on a
    shared pool of worker threads.
"""

import concurrent.futures
import logging
import traceback

from .protocol import fields
from .session import Interrupted, SessionNotFound

logger = logging.getLogger(__name__)


class Dispatcher:
    """ Dispatch messages to *chain*, the composed handler, using sessions
        from *store*, a :class:`mrepl.session.SessionStore`. At most
        *workers* handlers run concurrently.

        Immediate operations, the ones that must reach a session even while
        it is busy, run on a small pool of their own so that they are never
        stuck behind long-running work.

        The handler in use can be replaced at any time via :func:`use`; a
        message picks up whichever handler is current when it actually
        starts running.
    """

    worker_count = 8
    immediate_count = 2

    def __init__(self, chain, store, workers=None):

        if workers is None:
            workers = self.worker_count

        self.chain = chain
        self.store = store
        self.workers = concurrent.futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix='mrepl')
        self.immediate = concurrent.futures.ThreadPoolExecutor(max_workers=self.immediate_count, thread_name_prefix='mrepl-immediate')
        self.shutdown = False


    def use(self, chain):
        """ Switch to a newly composed *chain* for all subsequent messages.
        """

        self.chain = chain


    def dispatch(self, message):
        """ Accept one inbound *message*. This method does not block on the
            handling of the message; responses are delivered through the
            message's transport.
        """

        if self.shutdown:
            raise RuntimeError('dispatcher is shut down')

        session_id = message.get(fields.SESSION)

        if session_id is None:
            session = self.store.ephemeral()
        else:
            try:
                session = self.store.lookup(session_id)
            except SessionNotFound:
                logger.debug('%s for unknown session %s', message.op, session_id)
                status = (fields.ERROR, fields.UNKNOWN_SESSION, fields.DONE)
                self._respond(message, {fields.STATUS: status})
                return

        message.session = session

        if message.op in self.chain.immediate:
            self.immediate.submit(self._immediate, message)
        else:
            session.queue.submit(self.workers, _Work(self, message))


    def close(self, wait=True):
        self.shutdown = True
        self.immediate.shutdown(wait=wait)
        self.workers.shutdown(wait=wait)


    def _immediate(self, message):
        """ Run the chain for a message whose operation bypasses the
            session's queue.
        """

        try:
            self.chain(message)
        except Exception:
            self._failed(message)


    def _run(self, message, finish):
        """ Run the chain for *message* as the active work item of its
            session. *finish* releases the session's serialization guarantee;
            it is called exactly once, after the handler returns, or, if the
            handler deferred completion, after the final response is sent.
        """

        session = message.session

        def complete():
            session.end(message)
            finish()

        if session.closed:
            status = (fields.ERROR, fields.SESSION_CLOSED, fields.DONE)
            self._respond(message, {fields.STATUS: status})
            complete()
            return

        # Interrupted can arrive anywhere between begin() and the return
        # from leave(), at most once; the loop goes back into leave() after
        # it does.
        state = _State()

        while state.left == False:
            try:
                self._execute(message, state)
            except Interrupted:
                state.interrupted = True

        if state.interrupted:
            logger.debug('interrupted %s %s', message.op, message.id)
            if message.completed == False:
                self._respond(message, {fields.STATUS: (fields.INTERRUPTED, fields.DONE)})

        elif state.error is not None:
            logger.error('error handling %s %s\n%s', message.op, message.id, state.error)
            self._error(message, state.error)

        if message.deferred and message.completed == False and state.interrupted == False and state.error is None:
            message.when_complete(complete)
        else:
            complete()


    def _execute(self, message, state):

        session = message.session

        if state.started == False:
            state.started = True
            chain = self.chain
            session.begin(message)

            try:
                chain(message)
            except Interrupted:
                raise
            except BaseException:
                state.error = traceback.format_exc()

        session.leave(message, state.interrupted)
        state.left = True


    def _failed(self, message):

        logger.exception('error handling %s %s', message.op, message.id)
        self._error(message, traceback.format_exc())


    def _error(self, message, text):

        slots = dict()
        slots[fields.STATUS] = (fields.ERROR, fields.DONE)
        slots['err'] = text
        self._respond(message, slots)


    def _respond(self, message, slots):
        """ Send a response from the dispatcher itself. Failures are logged,
            never raised; there is nobody further up to report them to.
        """

        try:
            message.respond(slots)
        except Exception:
            logger.exception('unable to respond to %s %s', message.op, message.id)


# end of class Dispatcher



class _State:
    """ Progress of one message through :func:`Dispatcher._run`.
    """

    def __init__(self):
        self.started = False
        self.left = False
        self.interrupted = False
        self.error = None



class _Work:
    """ A queued unit of work: run one message through the dispatcher.
    """

    def __init__(self, dispatcher, message):
        self.dispatcher = dispatcher
        self.message = message


    def __call__(self, finish):
        self.dispatcher._run(self.message, finish)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
