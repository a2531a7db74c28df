""" Changing the middleware set of a running server. Middleware is named by
    ``module:attribute`` import paths; after each change the stack is
    linearized and composed again, and subsequent messages are handled by
    the new chain.
"""

import logging

from ..middleware import CyclicDependency, Descriptor, Middleware, OpSpec
from ..protocol import fields

logger = logging.getLogger(__name__)


handles = dict()

handles['ls-middleware'] = OpSpec(
    doc='List of the middleware in the current stack, outermost first.',
    returns={'middleware': 'List of middleware names.'})

handles['add-middleware'] = OpSpec(
    doc='Adds middleware to the current stack.',
    requires={'middleware': "List of 'module:attribute' references to middleware."},
    returns={
        'middleware': 'List of middleware names, after the change.',
        'unresolved-middleware': 'List of references that could not be resolved.',
    })

handles['swap-middleware'] = OpSpec(
    doc='Replaces the middleware added to the stack with the middleware specified; the default middleware always remains.',
    requires={'middleware': "List of 'module:attribute' references to middleware."},
    returns={
        'middleware': 'List of middleware names, after the change.',
        'unresolved-middleware': 'List of references that could not be resolved.',
    })


class Dynamic(Middleware):
    """ Middleware management operations for the :class:`mrepl.server.Stack`
        in *stack*.
    """

    name = 'dynamic-loader'

    def __init__(self, stack):

        Middleware.__init__(self)
        self.stack = stack
        self.descriptor = Descriptor(handles=handles)


    def handle(self, message, next):

        op = message.op

        if op == 'ls-middleware':
            self.ls_middleware(message)
        elif op == 'add-middleware':
            self.change(message, self.stack.add)
        elif op == 'swap-middleware':
            self.change(message, self.stack.swap)
        else:
            next(message)


    def ls_middleware(self, message):

        slots = dict()
        slots['middleware'] = self.stack.names()
        slots[fields.STATUS] = fields.DONE
        message.respond(slots)


    def change(self, message, method):

        references = message.get('middleware')

        if isinstance(references, str):
            references = [references]

        if not isinstance(references, (list, tuple)):
            status = (fields.ERROR, 'no-middleware', fields.DONE)
            message.respond({fields.STATUS: status})
            return

        resolved, unresolved = self.stack.resolve(references)

        if unresolved:
            slots = dict()
            slots['unresolved-middleware'] = unresolved
            slots[fields.STATUS] = (fields.ERROR, 'middleware-error', fields.DONE)
            message.respond(slots)
            return

        try:
            method(resolved)
        except CyclicDependency as e:
            logger.error('rejected middleware change: %s', e)
            slots = dict()
            slots['err'] = str(e) + '\n'
            slots[fields.STATUS] = (fields.ERROR, 'middleware-error', fields.DONE)
            message.respond(slots)
            return

        slots = dict()
        slots['middleware'] = self.stack.names()
        slots[fields.STATUS] = fields.DONE
        message.respond(slots)


# end of class Dynamic


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
