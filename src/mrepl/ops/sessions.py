""" Client-facing session management: creating, cloning, listing, closing,
    and interrupting sessions.
"""

from ..middleware import Descriptor, Middleware, OpSpec
from ..protocol import fields
from ..session import SessionNotFound


handles = dict()

handles['clone'] = OpSpec(
    doc='Clones the current session, returning the id of the newly created session. A new, empty session is created if no session is specified.',
    optional={'session': 'The session to be cloned.'},
    returns={'new-session': 'The id of the new session.'})

handles['close'] = OpSpec(
    doc='Closes the specified session, interrupting anything running in it.',
    requires={'session': 'The session to close.'},
    returns={})

handles['ls-sessions'] = OpSpec(
    doc='Lists the ids of all active sessions.',
    returns={'sessions': 'A list of all available session ids.'})

handles['interrupt'] = OpSpec(
    doc='Attempts to interrupt the operation currently running in the specified session.',
    requires={'session': 'The session in which the operation is running.'},
    optional={'interrupt-id': 'The id of the message to interrupt; only that message is interrupted if specified.'},
    returns={'status': "'interrupted' if an operation was interrupted, 'session-idle' if nothing was running, 'interrupt-id-mismatch' if the running operation has a different id."})


class Sessions(Middleware):
    """ Session operations against the :class:`mrepl.session.SessionStore`
        in *store*.
    """

    name = 'session'

    def __init__(self, store):

        Middleware.__init__(self)
        self.store = store
        self.descriptor = Descriptor(handles=handles, immediate=('close', 'interrupt'))


    def handle(self, message, next):

        op = message.op

        if op == 'clone':
            self.clone(message)
        elif op == 'close':
            self.close(message)
        elif op == 'ls-sessions':
            self.ls_sessions(message)
        elif op == 'interrupt':
            self.interrupt(message)
        else:
            next(message)


    def clone(self, message):

        if fields.SESSION in message:
            try:
                session = self.store.clone(message[fields.SESSION])
            except SessionNotFound:
                _unknown_session(message)
                return
        else:
            session = self.store.create()

        slots = dict()
        slots['new-session'] = session.id
        slots[fields.STATUS] = fields.DONE
        message.respond(slots)


    def close(self, message):

        session_id = message.get(fields.SESSION)

        try:
            self.store.close(session_id)
        except SessionNotFound:
            _unknown_session(message)
            return

        status = (fields.SESSION_CLOSED, fields.DONE)
        message.respond({fields.STATUS: status})


    def ls_sessions(self, message):

        slots = dict()
        slots['sessions'] = self.store.ids()
        slots[fields.STATUS] = fields.DONE
        message.respond(slots)


    def interrupt(self, message):

        session = message.session
        interrupt_id = message.get('interrupt-id')

        if fields.SESSION not in message:
            # A one-off session was made for this message; there is
            # nothing it could interrupt.
            status = (fields.ERROR, 'no-session', fields.DONE)
            message.respond({fields.STATUS: status})
            return

        result = session.interrupt(interrupt_id)

        if result == fields.INTERRUPT_ID_MISMATCH:
            status = (fields.ERROR, result, fields.DONE)
        elif result == fields.SESSION_IDLE:
            status = (result, fields.DONE)
        else:
            status = (fields.DONE,)

        message.respond({fields.STATUS: status})


# end of class Sessions



def _unknown_session(message):

    status = (fields.ERROR, fields.UNKNOWN_SESSION, fields.DONE)
    message.respond({fields.STATUS: status})


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
