from mrepl import cli
from mrepl import config
from mrepl import json
from mrepl.server import Server


def test_no_command(capsys):

    assert cli.main([]) == 2
    assert 'usage' in capsys.readouterr().err


def test_describe_text(capsys):

    assert cli.main(['describe']) == 0
    out = capsys.readouterr().out

    for op in ('eval', 'clone', 'describe', 'load-file', 'stdin'):
        assert op + '\n' in out


def test_describe_markdown(capsys):

    assert cli.main(['describe', '--format', 'markdown']) == 0
    out = capsys.readouterr().out

    assert out.startswith('# Supported operations')
    assert '## `eval`' in out


def test_describe_json(capsys):

    assert cli.main(['describe', '--format', 'json']) == 0
    directory = json.loads(capsys.readouterr().out)

    assert directory['eval']['requires']['code'] == 'The code to be evaluated.'


def test_eval_without_server(capsys):

    assert cli.main(['eval', '1 + 1']) == 1
    assert 'no running server' in capsys.readouterr().err


def test_eval(capsys):

    server = Server(config.Settings(workers=2))

    try:
        assert cli.main(['eval', "print('hi')\n6 * 7"]) == 0
        out = capsys.readouterr().out
        assert out == 'hi\n42\n'

        assert cli.main(['eval', '--port', str(server.port), '1 / 0']) == 1
        assert 'ZeroDivisionError' in capsys.readouterr().err
    finally:
        server.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
