""" Standard input for evaluations: text sent with the ``stdin`` operation
    is buffered in the session and consumed by code reading
    :data:`sys.stdin`.
"""

from ..middleware import Descriptor, Middleware, OpSpec
from ..protocol import fields


spec = OpSpec(
    doc="Add content from the value of 'stdin' to the input buffer of the session. An operation blocked reading input reported the 'need-input' status beforehand.",
    requires={
        'stdin': 'Content to add to the input buffer.',
        'session': 'The session whose input buffer receives the content.',
    },
    returns={'status': "A status of 'done'."})


class Stdin(Middleware):

    name = 'stdin'

    def __init__(self):

        Middleware.__init__(self)
        self.descriptor = Descriptor(requires='clone', expects='eval', handles={'stdin': spec}, immediate='stdin')


    def handle(self, message, next):

        if message.op != 'stdin':
            next(message)
            return

        text = message.get('stdin', '')
        if not isinstance(text, str):
            status = (fields.ERROR, 'bad-stdin', fields.DONE)
            message.respond({fields.STATUS: status})
            return

        try:
            message.session.input.write(text)
        except ValueError:
            status = (fields.ERROR, fields.SESSION_CLOSED, fields.DONE)
            message.respond({fields.STATUS: status})
            return

        message.respond({fields.STATUS: fields.DONE})


# end of class Stdin


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
