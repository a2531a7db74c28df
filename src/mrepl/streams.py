""" Per-thread standard streams. Evaluation in one session must not see
    output or input belonging to another session running concurrently, so
    :data:`sys.stdout`, :data:`sys.stderr`, and :data:`sys.stdin` are
    replaced by routers that consult a thread-local target before falling
    back to the original stream.
"""

import contextlib
import sys
import threading

_local = threading.local()
_install_lock = threading.Lock()

_names = ('stdout', 'stderr', 'stdin')


class Router:
    """ A stand-in for one of the standard streams. Every attribute access
        is forwarded to the stream the current thread redirected to, or to
        the *original* stream if there is no redirection in effect.
    """

    def __init__(self, name, original):
        self._name = name
        self._original = original


    def _target(self):
        target = getattr(_local, self._name, None)
        if target is None:
            return self._original
        return target


    def __getattr__(self, attribute):
        return getattr(self._target(), attribute)


    def __iter__(self):
        return iter(self._target())


    def write(self, text):
        return self._target().write(text)


    def flush(self):
        return self._target().flush()


    def readline(self, size=-1):
        return self._target().readline(size)


    def read(self, size=-1):
        return self._target().read(size)


# end of class Router



class ResponseWriter:
    """ A writable text stream that sends everything written to it as the
        *slot* of a response to *message*; used to return ``out`` and
        ``err`` text to the client as it is produced.
    """

    encoding = 'utf-8'
    errors = 'strict'

    def __init__(self, message, slot):
        self.message = message
        self.slot = slot


    def write(self, text):

        if text:
            self.message.respond({self.slot: text})

        return len(text)


    def writelines(self, lines):
        for line in lines:
            self.write(line)


    def flush(self):
        pass


    def isatty(self):
        return False


    def writable(self):
        return True


    def readable(self):
        return False


# end of class ResponseWriter



class InputReader:
    """ Readable text stream over a :class:`mrepl.session.InputBuffer`.
    """

    encoding = 'utf-8'
    errors = 'strict'

    def __init__(self, buffer):
        self.buffer = buffer


    def __iter__(self):
        while True:
            line = self.readline()
            if line == '':
                return
            yield line


    def readline(self, size=-1):
        return self.buffer.readline(size)


    def read(self, size=-1):
        return self.buffer.read(size)


    def isatty(self):
        return False


    def readable(self):
        return True


    def writable(self):
        return False


# end of class InputReader



def install():
    """ Put a :class:`Router` in place of each standard stream, unless one
        is already there. Calling this more than once is harmless; it is
        called again on every :func:`redirect` because test harnesses and
        other libraries swap the standard streams too.
    """

    with _install_lock:
        for name in _names:
            current = getattr(sys, name)
            if isinstance(current, Router):
                continue
            setattr(sys, name, Router(name, current))



@contextlib.contextmanager
def redirect(stdout=None, stderr=None, stdin=None):
    """ Redirect the standard streams for the calling thread only, for the
        duration of the context. Streams given as None are left alone.
    """

    install()

    replacements = dict(stdout=stdout, stderr=stderr, stdin=stdin)
    previous = dict()

    for name, stream in replacements.items():
        if stream is None:
            continue
        previous[name] = getattr(_local, name, None)
        setattr(_local, name, stream)

    try:
        yield
    finally:
        for name, stream in previous.items():
            setattr(_local, name, stream)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
