""" Value printing. The :class:`Print` middleware sits outside of anything
    that produces values (evaluation, chiefly); it wraps the transport of
    every message passing through it so that a ``value`` slot holding a
    Python object is rendered to text before it leaves the process.
"""

import importlib
import pprint

from ..middleware import Descriptor, Middleware
from ..protocol import fields
from ..transport.base import Transport


VALUE = 'value'


def _repr(value, options):

    text = repr(value)

    limit = options.get('limit')
    if limit is not None:
        limit = int(limit)
        if len(text) > limit:
            text = text[:limit] + '...'

    return text


def _str(value, options):

    text = str(value)

    limit = options.get('limit')
    if limit is not None:
        limit = int(limit)
        if len(text) > limit:
            text = text[:limit] + '...'

    return text


def _pprint(value, options):

    arguments = dict()
    for key in ('width', 'indent', 'depth'):
        if key in options:
            arguments[key] = int(options[key])

    if 'compact' in options:
        arguments['compact'] = bool(options['compact'])

    return pprint.pformat(value, **arguments)


printers = dict()
printers['repr'] = _repr
printers['str'] = _str
printers['pprint'] = _pprint


def resolve(name):
    """ Return the printing function for *name*: either one of the built-in
        printers (``repr``, ``str``, ``pprint``) or a ``module:function``
        reference to a callable accepting a value and a dictionary of
        options. ValueError is raised if *name* cannot be resolved.
    """

    try:
        return printers[name]
    except KeyError:
        pass

    if not isinstance(name, str) or ':' not in name:
        raise ValueError('unknown printer: ' + repr(name))

    module_name, attribute = name.split(':', 1)

    try:
        module = importlib.import_module(module_name)
        function = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ValueError('unknown printer: %r (%s)' % (name, e)) from None

    if not callable(function):
        raise ValueError('printer is not callable: ' + repr(name))

    return function



class PrintingTransport(Transport):
    """ Wrap another transport, rendering the ``value`` slot of each
        response with *printer* before passing it along.
    """

    def __init__(self, inner, printer, options):
        self.inner = inner
        self.printer = printer
        self.options = options


    def send(self, msg):

        if VALUE in msg:
            msg[VALUE] = self.printer(msg[VALUE], self.options)

        self.inner.send(msg)


# end of class PrintingTransport



class Print(Middleware):
    """ Render values in responses using the printer named in the message's
        ``printer`` slot, or the *default* printer otherwise; the optional
        ``print-options`` slot is a dictionary handed to the printer.
    """

    name = 'print'

    def __init__(self, default='repr'):

        Middleware.__init__(self)

        # Fail early on a bad default.
        resolve(default)
        self.default = default

        self.descriptor = Descriptor(expects=('eval', 'load-file'))


    def handle(self, message, next):

        name = message.get(fields.PRINTER, self.default)
        options = message.get(fields.PRINT_OPTIONS)

        if options is None:
            options = dict()

        try:
            printer = resolve(name)
        except ValueError as e:
            status = (fields.ERROR, 'unknown-printer', fields.DONE)
            message.respond({fields.STATUS: status, 'err': str(e) + '\n'})
            return

        if not isinstance(options, dict):
            status = (fields.ERROR, 'bad-print-options', fields.DONE)
            message.respond({fields.STATUS: status})
            return

        message.transport = PrintingTransport(message.transport, printer, options)
        next(message)


# end of class Print


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
