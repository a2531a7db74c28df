""" The ``describe`` operation, and the renderings of the operation
    directory it is built from. The directory is a read-only projection of
    what the middleware in a chain declare they handle; nothing here alters
    that metadata.
"""

import platform

from .. import version
from ..middleware import Descriptor, Middleware, OpSpec
from ..protocol import fields


spec = OpSpec(
    doc='Produce a machine- and human-readable directory and documentation for the operations supported by this server.',
    optional={'verbose?': 'Include informational detail for each operation in the return message.'},
    returns={
        'ops': 'Map of operations supported by this server to a map of details.',
        'versions': 'Map containing version information for mrepl and Python.',
        'aux': 'Map of auxiliary data contributed by the middleware.',
    })


def directory(ops):
    """ Return the structured directory for *ops*, a dictionary mapping
        operation names to :class:`mrepl.middleware.OpSpec` instances:
        each operation maps to a dictionary with the keys ``doc``,
        ``requires``, ``optional``, and ``returns``.
    """

    rendered = dict()
    for op in sorted(ops.keys()):
        rendered[op] = ops[op].to_dict()

    return rendered



def render_text(directory):
    """ Return a plain text rendering of a :func:`directory`.
    """

    lines = list()

    for op, spec in directory.items():
        lines.append(op)
        lines.append('')

        doc = spec.get('doc', '')
        if doc:
            lines.append('    ' + doc)
            lines.append('')

        for title, key in (('Required', 'requires'), ('Optional', 'optional'), ('Returns', 'returns')):
            slots = spec.get(key)
            if not slots:
                continue

            lines.append('    ' + title + ':')
            for slot in sorted(slots.keys()):
                lines.append('        %s: %s' % (slot, slots[slot]))
            lines.append('')

    return '\n'.join(lines)



def render_markdown(directory):
    """ Return a Markdown rendering of a :func:`directory`, one section per
        operation.
    """

    lines = list()
    lines.append('# Supported operations')
    lines.append('')

    for op, spec in directory.items():
        lines.append('## `' + op + '`')
        lines.append('')

        doc = spec.get('doc', '')
        if doc:
            lines.append(doc)
            lines.append('')

        for title, key in (('Required parameters', 'requires'), ('Optional parameters', 'optional'), ('Returns', 'returns')):
            slots = spec.get(key)

            lines.append('###### ' + title)
            lines.append('')

            if not slots:
                lines.append('* none')
            else:
                for slot in sorted(slots.keys()):
                    lines.append('* `%s` %s' % (slot, slots[slot]))

            lines.append('')

    return '\n'.join(lines)



def versions():

    described = dict()
    described['mrepl'] = _version_map(version.__version__)
    described['python'] = _version_map(platform.python_version())
    return described



def _version_map(version_string):

    numbers = version_string.split('.')

    mapped = dict()
    mapped['version-string'] = version_string

    for key, number in zip(('major', 'minor', 'incremental'), numbers):
        try:
            mapped[key] = int(number)
        except ValueError:
            mapped[key] = number

    return mapped



class Describe(Middleware):
    """ Handle the ``describe`` operation for whatever chain the message is
        being processed by.
    """

    name = 'describe'

    def __init__(self):

        Middleware.__init__(self)
        self.descriptor = Descriptor(handles={'describe': spec}, immediate='describe')


    def handle(self, message, next):

        if message.op != 'describe':
            next(message)
            return

        ops = message.chain.ops()
        verbose = message.get('verbose?', False)

        if verbose:
            described = directory(ops)
        else:
            described = dict()
            for op in sorted(ops.keys()):
                described[op] = dict()

        slots = dict()
        slots['ops'] = described
        slots['versions'] = versions()
        slots['aux'] = dict()
        slots[fields.STATUS] = fields.DONE
        message.respond(slots)


# end of class Describe


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
