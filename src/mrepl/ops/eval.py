""" Evaluation of Python source in a session. The session's bindings are
    the global namespace for the evaluated code; output written to the
    standard streams is returned to the client as ``out`` and ``err``
    responses while the code runs, and reading standard input asks the
    client for more via the ``need-input`` status.
"""

import ast
import traceback

from .. import streams
from ..middleware import Descriptor, Middleware, OpSpec
from ..protocol import fields
from ..session import Interrupted


spec = OpSpec(
    doc='Evaluates code. Statements run in order; if the last statement is an expression its value is returned.',
    requires={
        'code': 'The code to be evaluated.',
        'session': 'The session in which to evaluate the code; a one-off session is used if omitted.',
    },
    optional={
        'file': 'The file name to report in tracebacks.',
        'line': 'The line number in *file* at which *code* starts.',
    },
    returns={
        'value': 'The result of the final expression, rendered by the printer in effect.',
        'out': 'Text written to standard output.',
        'err': 'Text written to standard error, or a traceback.',
        'ex': 'The type of an exception raised by the evaluation.',
        'root-ex': 'The type of the root cause of an exception raised by the evaluation.',
        'ns': 'The value of __name__ in the session after the evaluation.',
    })


class Eval(Middleware):
    """ Handle the ``eval`` operation. The *printer*, if provided, is the
        middleware responsible for rendering values; it must be ordered
        further out than this one.
    """

    name = 'eval'

    filename = '<mrepl>'

    def __init__(self, printer=None):

        Middleware.__init__(self)

        requires = ['clone']
        if printer is not None:
            requires.append(printer)

        self.descriptor = Descriptor(requires=requires, handles={'eval': spec})


    def handle(self, message, next):

        if message.op != 'eval':
            next(message)
            return

        code = message.get('code')

        if code is None:
            status = (fields.ERROR, 'no-code', fields.DONE)
            message.respond({fields.STATUS: status})
            return

        evaluate(message, code)
        message.respond({fields.STATUS: fields.DONE})


# end of class Eval



def evaluate(message, code):
    """ Run *code* in the session attached to *message*, sending responses
        for output, the resulting value, and any exception.
        :class:`mrepl.session.Interrupted` propagates to the caller.
    """

    session = message.session
    bindings = session.bindings

    filename = message.get('file') or Eval.filename
    line = message.get('line')

    out = streams.ResponseWriter(message, 'out')
    err = streams.ResponseWriter(message, 'err')
    stdin = streams.InputReader(session.input)

    def need_input():
        message.respond({fields.STATUS: fields.NEED_INPUT})

    bindings.setdefault('__name__', '__mrepl__')

    try:
        body, last = _compile(code, filename, line)

        with streams.redirect(stdout=out, stderr=err, stdin=stdin):
            with session.input.requesting(need_input):
                exec(body, bindings)

                if last is None:
                    return

                value = eval(last, bindings)

    except Interrupted:
        raise

    except BaseException as e:
        _report(message, bindings, e)
        return

    _remember(bindings, value)
    message.respond({'value': value, 'ns': bindings.get('__name__')})



def _compile(code, filename, line):
    """ Compile *code*, splitting off a trailing expression statement so
        that its value can be returned, the way the interactive interpreter
        does. Returns a tuple of (body, last); *last* is None if the code
        does not end in an expression.
    """

    tree = ast.parse(code, filename, 'exec')

    if line is not None:
        ast.increment_lineno(tree, int(line) - 1)

    last = None

    if tree.body and isinstance(tree.body[-1], ast.Expr):
        expression = ast.Expression(tree.body.pop().value)
        last = compile(expression, filename, 'eval')

    body = compile(tree, filename, 'exec')
    return body, last



def _remember(bindings, value):
    """ Keep the last three non-None results in ``_``, ``__``, and ``___``.
    """

    if value is None:
        return

    bindings['___'] = bindings.get('__')
    bindings['__'] = bindings.get('_')
    bindings['_'] = value



def _report(message, bindings, exception):

    bindings['_e'] = exception

    root = exception
    seen = set()
    while id(root) not in seen:
        seen.add(id(root))
        if root.__cause__ is not None:
            root = root.__cause__
        elif root.__context__ is not None:
            root = root.__context__
        else:
            break

    # Skip the frame for evaluate() itself; the client only cares about
    # the evaluated code.

    tb = exception.__traceback__
    if tb is not None and tb.tb_next is not None:
        tb = tb.tb_next

    text = ''.join(traceback.format_exception(type(exception), exception, tb))
    message.respond({'err': text})

    slots = dict()
    slots[fields.STATUS] = fields.EVAL_ERROR
    slots['ex'] = _qualified(type(exception))
    slots['root-ex'] = _qualified(type(root))
    message.respond(slots)



def _qualified(exception_type):

    module = exception_type.__module__
    if module == 'builtins':
        return exception_type.__qualname__

    return module + '.' + exception_type.__qualname__


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
