import pytest

from mrepl import config

from harness import Local


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
    """ Keep configuration and port files out of the real home directory.
    """

    for variable in config.environment.values():
        monkeypatch.delenv(variable, raising=False)

    monkeypatch.setenv('MREPL_HOME', str(tmp_path))
    monkeypatch.setattr(config.directory, 'found', None)

    yield tmp_path



@pytest.fixture
def local():

    servers = list()

    def start(middleware=(), workers=4):
        server = Local(middleware, workers)
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
