""" Loading whole files: the ``load-file`` operation is rewritten into an
    ``eval`` of the file contents, reporting the file's name in tracebacks.
"""

from ..middleware import Descriptor, Middleware, OpSpec
from ..protocol import fields


spec = OpSpec(
    doc='Loads the body of a file, evaluating it in the session.',
    requires={'file': 'Full contents of a file of code.'},
    optional={
        'file-path': 'Source-path-relative path of the source file.',
        'file-name': 'Name of the source file.',
    },
    returns={
        'value': 'The result of the final expression in the file, if it ends in one.',
        'out': 'Text written to standard output.',
        'err': 'Text written to standard error, or a traceback.',
    })


class LoadFile(Middleware):

    name = 'load-file'

    def __init__(self):

        Middleware.__init__(self)
        self.descriptor = Descriptor(expects='eval', handles={'load-file': spec})


    def handle(self, message, next):

        if message.op != 'load-file':
            next(message)
            return

        contents = message.get('file')

        if not isinstance(contents, str):
            status = (fields.ERROR, 'no-file', fields.DONE)
            message.respond({fields.STATUS: status})
            return

        name = message.get('file-path') or message.get('file-name') or '<load-file>'

        # The 'file' slot means something else to eval: the name to use in
        # tracebacks.

        message[fields.OP] = 'eval'
        message['code'] = contents
        message['file'] = name
        message['line'] = 1

        next(message)


# end of class LoadFile


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
