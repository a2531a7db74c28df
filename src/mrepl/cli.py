""" Command line interface: ``mrepl serve`` runs a server, ``mrepl eval``
    sends code to a running server, and ``mrepl describe`` prints the
    directory of operations the default middleware stack supports.
"""

import argparse
import logging
import signal
import sys

from . import config
from . import json
from . import ops
from .protocol import fields
from .protocol import message as message_module
from .session import SessionStore

logger = logging.getLogger(__name__)


def main(argv=None):

    parser = arguments()
    parsed = parser.parse_args(argv)

    if parsed.command is None:
        parser.print_usage(sys.stderr)
        return 2

    configure_logging(parsed.verbose, parsed.quiet)

    try:
        return parsed.function(parsed)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.debug('command failed', exc_info=True)
        sys.stderr.write('mrepl ' + parsed.command + ': ' + str(e) + '\n')
        return 1



def arguments():

    parser = argparse.ArgumentParser(prog='mrepl', description='Interactive evaluation server built from composable middleware.')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='Log more detail; repeat for debug output.')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only log errors.')

    commands = parser.add_subparsers(dest='command')

    serve_parser = commands.add_parser('serve', help='Run a server until interrupted.')
    serve_parser.add_argument('--address', default=None, help='Interface to bind to.')
    serve_parser.add_argument('--port', type=int, default=None, help='Port to bind to; picked automatically if not specified.')
    serve_parser.add_argument('--workers', type=int, default=None, help='Maximum number of concurrent handlers.')
    serve_parser.add_argument('--middleware', action='append', default=[], help="Additional 'module:attribute' middleware; may be repeated.")
    serve_parser.set_defaults(function=serve)

    eval_parser = commands.add_parser('eval', help='Evaluate code on a running server.')
    eval_parser.add_argument('--address', default='127.0.0.1', help='Server address.')
    eval_parser.add_argument('--port', type=int, default=None, help='Server port; read from the port file if not specified.')
    eval_parser.add_argument('--timeout', type=float, default=60, help='Seconds to wait for the evaluation to finish.')
    eval_parser.add_argument('code', help='Python code to evaluate.')
    eval_parser.set_defaults(function=evaluate)

    describe_parser = commands.add_parser('describe', help='Describe the operations of the default middleware.')
    describe_parser.add_argument('--format', choices=('text', 'markdown', 'json'), default='text')
    describe_parser.set_defaults(function=describe)

    return parser



def configure_logging(verbose=0, quiet=False):

    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')



def serve(parsed):

    from .server import Server

    settings = config.load()

    overrides = dict()
    if parsed.address is not None:
        overrides['address'] = parsed.address
    if parsed.port is not None:
        overrides['port'] = parsed.port
    if parsed.workers is not None:
        overrides['workers'] = parsed.workers
    if parsed.middleware:
        overrides['middleware'] = settings.middleware + parsed.middleware

    settings.update(overrides)

    server = Server(settings)
    sys.stdout.write(str(server.port) + '\n')
    sys.stdout.flush()

    def stop(signum, frame):
        server.close()

    signal.signal(signal.SIGTERM, stop)

    try:
        while not server.wait(1):
            pass
    finally:
        server.close()

    return 0



def evaluate(parsed):

    from .transport import zmq as zmq_transport

    port = parsed.port
    if port is None:
        port = config.load_port()
    if port is None:
        raise RuntimeError('no port specified and no running server found')

    request = message_module.request('eval', code=parsed.code)

    client = zmq_transport.client(parsed.address, port)
    pending = client.send(request)

    status = 0

    while True:
        response = pending.recv(timeout=parsed.timeout)

        out = response.get('out')
        if out:
            sys.stdout.write(out)

        err = response.get('err')
        if err:
            sys.stderr.write(err)

        value = response.get('value')
        if value is not None:
            sys.stdout.write(str(value) + '\n')

        if fields.ERROR in response.status or fields.EVAL_ERROR in response.status:
            status = 1

        if fields.DONE in response.status:
            break

    sys.stdout.flush()
    return status



def describe(parsed):

    from .middleware import Registry, stack
    from .ops import describe as describe_module

    defaults = ops.defaults(SessionStore())
    chain = stack(Registry(defaults))
    directory = describe_module.directory(chain.ops())

    if parsed.format == 'json':
        sys.stdout.write(json.dumps(directory).decode() + '\n')
    elif parsed.format == 'markdown':
        sys.stdout.write(describe_module.render_markdown(directory) + '\n')
    else:
        sys.stdout.write(describe_module.render_text(directory) + '\n')

    return 0


if __name__ == '__main__':
    sys.exit(main())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
