""" A class representation of an mrepl message. Requests and responses are
    both :class:`Message` instances; a request additionally knows where its
    responses should be sent, which session it is running in, and whether
    its handling has completed.
"""

import itertools
import threading

from . import fields


class Message:
    """ The :class:`Message` is a thin encapsulation of an open mapping of
        named *slots*. Every request carries at least an ``op`` and an ``id``
        slot; a ``session`` slot is optional, and any other slot is specific
        to the operation being requested, and is passed through untouched
        unless a middleware decides otherwise.

        The attributes that are not slots are local context, and are never
        put on the wire:

        :ivar transport: Where responses to this message are sent.
        :ivar session: The :class:`mrepl.session.Session` the dispatcher
                       selected for this message, if any.
        :ivar chain: The composed handler processing this message.
    """

    def __init__(self, slots=None, transport=None, **kwargs):

        if slots is None:
            slots = dict()
        else:
            slots = dict(slots)

        slots.update(kwargs)

        self.slots = slots
        self.transport = transport
        self.session = None
        self.chain = None

        self._lock = threading.Lock()
        self._deferred = False
        self._cancel = None
        self._completed = False
        self._callbacks = list()


    def __contains__(self, slot):
        return slot in self.slots


    def __getitem__(self, slot):
        return self.slots[slot]


    def __setitem__(self, slot, value):
        self.slots[slot] = value


    def __delitem__(self, slot):
        del self.slots[slot]


    def __iter__(self):
        return iter(self.slots)


    def __len__(self):
        return len(self.slots)


    def __repr__(self):
        return 'Message(' + repr(self.slots) + ')'


    def get(self, slot, default=None):
        return self.slots.get(slot, default)


    def items(self):
        return self.slots.items()


    def keys(self):
        return self.slots.keys()


    @property
    def op(self):
        return self.slots.get(fields.OP)


    @property
    def id(self):
        return self.slots.get(fields.ID)


    @property
    def status(self):
        """ The status values of this message, always as a list.
        """

        return _status_list(self.slots.get(fields.STATUS))


    def response(self, slots=None, **kwargs):
        """ Return a new :class:`Message` answering this one. The response
            carries this message's ``id`` and ``session`` slots, plus any
            additional *slots*; a ``status`` slot is normalized to a list.
        """

        response = dict()
        response[fields.ID] = self.id

        try:
            response[fields.SESSION] = self.slots[fields.SESSION]
        except KeyError:
            pass

        if slots is not None:
            response.update(slots)
        response.update(kwargs)

        if fields.STATUS in response:
            response[fields.STATUS] = _status_list(response[fields.STATUS])

        return Message(response)


    def respond(self, slots=None, **kwargs):
        """ Build a response via :func:`response` and send it on this
            message's transport. A response with a ``done`` status marks the
            handling of this message as complete. The response is returned.
        """

        response = self.response(slots, **kwargs)

        transport = self.transport
        if transport is None:
            raise RuntimeError('no transport to respond to ' + repr(self.id))

        transport.send(response)

        if fields.DONE in response.status:
            self._complete()

        return response


    def defer(self, cancel=None):
        """ Declare that the handling of this message continues after the
            handler returns; the session this message runs in remains busy
            until a response with a ``done`` status is sent. The optional
            *cancel* callable is the cancellation hook invoked if the session
            is interrupted in the meantime.
        """

        with self._lock:
            self._deferred = True
            self._cancel = cancel


    @property
    def deferred(self):
        return self._deferred


    @property
    def cancel(self):
        return self._cancel


    @property
    def completed(self):
        return self._completed


    def when_complete(self, callback):
        """ Invoke *callback* once this message is complete. If it already
            is, the callback is invoked immediately.
        """

        with self._lock:
            completed = self._completed
            if completed == False:
                self._callbacks.append(callback)

        if completed:
            callback()


    def _complete(self):

        with self._lock:
            if self._completed:
                return

            self._completed = True
            callbacks = self._callbacks
            self._callbacks = list()

        for callback in callbacks:
            callback()


# end of class Message



def _status_list(status):

    if status is None:
        return list()

    if isinstance(status, str):
        return [status]

    return list(status)



_id_min = 0
_id_max = 0xFFFFFFFF
_id_lock = threading.Lock()
_id_ticker = itertools.count(_id_min)


def _id_next():
    """ Return the next message identification number for subroutines to
        use when constructing a request.
    """

    global _id_ticker
    _id_lock.acquire()
    id = next(_id_ticker)

    if id >= _id_max:
        _id_ticker = itertools.count(_id_min)

        if id > _id_max:
            # This shouldn't happen, but here we are...
            id = next(_id_ticker)

    _id_lock.release()

    id = '%08x' % (id)
    return id



def request(op, slots=None, **kwargs):
    """ Convenience constructor for a client-side request: a :class:`Message`
        with the *op* slot set and a locally unique ``id`` assigned if one
        was not provided.
    """

    message = Message(slots, **kwargs)
    message[fields.OP] = op

    if message.id is None:
        message[fields.ID] = _id_next()

    return message


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
