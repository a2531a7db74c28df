""" Server configuration. Settings are read from ``server.json`` in the
    mrepl configuration directory, then overridden by environment variables;
    the port a running server is bound to is recorded in the same directory
    so that clients can find it.
"""

import os

from . import json


defaults = dict()
defaults['address'] = '127.0.0.1'
defaults['port'] = None
defaults['workers'] = 8
defaults['printer'] = 'repr'
defaults['middleware'] = list()

environment = dict()
environment['address'] = 'MREPL_ADDRESS'
environment['port'] = 'MREPL_PORT'
environment['workers'] = 'MREPL_WORKERS'
environment['printer'] = 'MREPL_PRINTER'


class Settings:
    """ A convenience class to represent the server settings; attributes
        correspond to the keys in :data:`defaults`:

        :ivar address: The interface the server binds to.
        :ivar port: The port number, or None to pick one automatically.
        :ivar workers: How many handlers may run concurrently.
        :ivar printer: The default value printer.
        :ivar middleware: ``module:attribute`` references to additional
                          middleware to load at startup.
    """

    def __init__(self, **kwargs):

        unknown = set(kwargs) - set(defaults)
        if unknown:
            raise TypeError('unknown settings: ' + ', '.join(sorted(unknown)))

        for key, value in defaults.items():
            if isinstance(value, list):
                value = list(value)
            setattr(self, key, value)

        self.update(kwargs)


    def __repr__(self):
        return 'Settings(' + repr(self.to_dict()) + ')'


    def update(self, values):
        """ Apply the key/value pairs in *values*, converting them to the
            expected types; ValueError is raised for a value that cannot be
            converted.
        """

        for key, value in values.items():
            if key not in defaults:
                continue

            if key == 'port':
                if value is not None and value != '':
                    value = int(value)
                    if value < 0 or value > 65535:
                        raise ValueError('invalid port number: ' + str(value))
                else:
                    value = None

            elif key == 'workers':
                value = int(value)
                if value < 1:
                    raise ValueError('at least one worker is required')

            elif key == 'middleware':
                if isinstance(value, str):
                    value = [entry for entry in value.split(',') if entry]
                else:
                    value = list(value)

            else:
                value = str(value)

            setattr(self, key, value)


    def to_dict(self):

        values = dict()
        for key in defaults.keys():
            values[key] = getattr(self, key)

        return values


# end of class Settings



def directory(default=None):
    """ Return the mrepl configuration directory. Passing an absolute
        *default* path selects (and creates) that directory for this and
        every later call; otherwise the first call settles on
        ``$MREPL_HOME``, or ``~/.mrepl`` if that is not set, and the answer
        is remembered from then on. The directory itself is only created
        when something is written to it.
    """

    if default is not None:
        default = os.path.expanduser(os.path.expandvars(str(default)))

        if not os.path.isabs(default):
            raise ValueError('the configuration directory must be an absolute path: ' + default)

        _ensure_directory(default)
        directory.found = default

    if directory.found is None:
        found = os.environ.get('MREPL_HOME')
        if not found:
            found = os.path.join(os.path.expanduser('~'), '.mrepl')

        directory.found = found

    return directory.found

directory.found = None



def filename():
    return os.path.join(directory(), 'server.json')


def port_filename():
    return os.path.join(directory(), 'port')



def load(path=None):
    """ Return a :class:`Settings` instance populated from the defaults, the
        JSON settings file at *path* (``server.json`` in the configuration
        directory if not specified) if it exists, and environment variables,
        in that order of increasing precedence.
    """

    if path is None:
        path = filename()

    settings = Settings()

    try:
        raw = open(path, 'rb').read()
    except FileNotFoundError:
        pass
    else:
        contents = json.loads(raw)
        if not isinstance(contents, dict):
            raise ValueError('settings file must contain a JSON object: ' + path)
        settings.update(contents)

    overrides = dict()
    for key, variable in environment.items():
        try:
            overrides[key] = os.environ[variable]
        except KeyError:
            continue

    settings.update(overrides)
    return settings



def save(settings, path=None):
    """ Write *settings* out as JSON; the default location is the same one
        :func:`load` reads from.
    """

    if path is None:
        path = filename()

    _ensure_directory(os.path.dirname(path))

    settings_file = open(path, 'wb')
    settings_file.write(json.dumps(settings.to_dict()))
    settings_file.close()



def save_port(port):
    """ Record the port number of a running server for clients to find.
    """

    path = port_filename()
    _ensure_directory(os.path.dirname(path))

    if os.path.exists(path) and not os.access(path, os.W_OK):
        raise OSError('cannot write to port file: ' + path)

    port_file = open(path, 'w')
    port_file.write(str(int(port)) + '\n')
    port_file.close()



def load_port():
    """ Return the port number recorded by :func:`save_port`, or None if
        there isn't one.
    """

    try:
        port = open(port_filename(), 'r').read()
    except FileNotFoundError:
        return None

    port = port.strip()
    if port == '':
        return None

    return int(port)



def remove_port():
    """ Remove the port file. Takes no action and throws no errors if the file
        does not exist.
    """

    try:
        os.remove(port_filename())
    except FileNotFoundError:
        pass



def _ensure_directory(path):

    if os.path.exists(path):
        if not os.access(path, os.W_OK):
            raise OSError('cannot write to configuration directory: ' + path)
    else:
        os.makedirs(path, mode=0o775)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
