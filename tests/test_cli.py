"""
Tests for CastleMock Lite CLI

Runs commands end to end against a temporary catalog file.
"""

import json

import pytest

from castlemock_lite.cli import build_parser, main


@pytest.fixture
def catalog_path(tmp_path):
    return str(tmp_path / 'catalog.json')


@pytest.fixture
def openapi_file(tmp_path):
    path = tmp_path / 'petstore.yaml'
    path.write_text(
        "openapi: 3.0.0\n"
        "info:\n"
        "  title: Petstore\n"
        "paths:\n"
        "  /pets:\n"
        "    get:\n"
        "      summary: List pets\n"
        "      responses:\n"
        "        '200':\n"
        "          content:\n"
        "            application/json:\n"
        "              example: [{\"id\": 1}]\n"
    )
    return str(path)


def run(catalog_path, *args):
    main(['--storage', catalog_path, *args])


def _only_project(catalog_path):
    with open(catalog_path, encoding='utf-8') as f:
        projects = json.load(f)['root']['projects']
    assert len(projects) == 1
    return projects[0]


@pytest.fixture(autouse=True)
def no_worker(monkeypatch):
    """Run tasks in-process so tests don't depend on thread timing."""
    monkeypatch.setenv('CASTLEMOCK_OFFLOAD_ENABLED', 'false')
    monkeypatch.setenv('CASTLEMOCK_SIMULATE_LATENCY', 'false')


class TestParser:
    """Test argument parsing."""

    def test_send_arguments(self):
        args = build_parser().parse_args(['send', 'p1', 'post', '/x', '-H', 'A: 1', '-H', 'B: 2', '--no-delay'])

        assert args.method == 'post'
        assert args.header == ['A: 1', 'B: 2']
        assert args.no_delay

    def test_no_command(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])

        assert exc.value.code == 1


class TestCommands:
    """Test command flows."""

    def test_import_start_send(self, catalog_path, openapi_file, capsys):
        run(catalog_path, 'import', openapi_file)
        project = _only_project(catalog_path)
        assert project['name'] == 'Petstore'

        run(catalog_path, 'start', project['id'])
        capsys.readouterr()
        run(catalog_path, 'send', project['id'], 'get', '/pets')

        out = capsys.readouterr().out
        assert 'GET /pets -> 200' in out
        assert '"id": 1' in out

    def test_send_stopped_project_exits(self, catalog_path, capsys):
        run(catalog_path, 'create', 'Empty')
        project = _only_project(catalog_path)

        with pytest.raises(SystemExit) as exc:
            run(catalog_path, 'send', project['id'], 'GET', '/x')

        assert exc.value.code == 1
        assert '503' in capsys.readouterr().out

    def test_export_and_restore(self, catalog_path, openapi_file, tmp_path):
        run(catalog_path, 'import', openapi_file)
        project = _only_project(catalog_path)
        backup_path = str(tmp_path / 'backup.json')

        run(catalog_path, 'export', project['id'], '-o', backup_path)
        run(catalog_path, 'delete', project['id'])
        run(catalog_path, 'import', backup_path, '--name', 'Restored')

        restored = _only_project(catalog_path)
        assert restored['name'] == 'Restored'
        assert restored['id'] != project['id']

    def test_strategy(self, catalog_path, openapi_file, capsys):
        run(catalog_path, 'import', openapi_file)
        with open(catalog_path, encoding='utf-8') as f:
            endpoint_id = json.load(f)['root']['endpoints'][0]['id']

        run(catalog_path, 'strategy', endpoint_id, 'RANDOM')

        with open(catalog_path, encoding='utf-8') as f:
            assert json.load(f)['root']['endpoints'][0]['responseStrategy'] == 'RANDOM'

    def test_unknown_project(self, catalog_path, capsys):
        with pytest.raises(SystemExit):
            run(catalog_path, 'start', 'missing')

        assert 'Project not found' in capsys.readouterr().out

    def test_unrecognized_document(self, catalog_path, tmp_path, capsys):
        path = tmp_path / 'other.json'
        path.write_text('{"hello": "world"}')

        with pytest.raises(SystemExit):
            run(catalog_path, 'import', str(path))

        assert 'Unrecognized document' in capsys.readouterr().out


def _root(catalog_path):
    with open(catalog_path, encoding='utf-8') as f:
        return json.load(f)['root']


@pytest.fixture
def endpoint_id(catalog_path):
    """A running project with one hand-written POST /users endpoint."""
    run(catalog_path, 'create', 'Users')
    project = _only_project(catalog_path)
    run(catalog_path, 'start', project['id'])
    run(catalog_path, 'add-endpoint', project['id'], 'post', '/users', '--strategy', 'QUERY_MATCH')
    return _root(catalog_path)['endpoints'][0]['id']


class TestCatalogEditing:
    """Test endpoint and response editing commands."""

    def test_add_endpoint(self, catalog_path, endpoint_id):
        endpoint = _root(catalog_path)['endpoints'][0]

        assert endpoint['method'] == 'POST'
        assert endpoint['name'] == 'POST /users'
        assert endpoint['responseStrategy'] == 'QUERY_MATCH'

    def test_add_endpoint_unknown_project(self, catalog_path, capsys):
        with pytest.raises(SystemExit) as exc:
            run(catalog_path, 'add-endpoint', 'missing', 'GET', '/x')

        assert exc.value.code == 1
        assert 'Project not found' in capsys.readouterr().out

    def test_query_match_served(self, catalog_path, endpoint_id, capsys):
        run(catalog_path, 'add-response', endpoint_id, 'Guest', '--body', '{"role": "guest"}')
        run(catalog_path, 'add-response', endpoint_id, 'Admin', '--status', '201',
            '--body', '{"role": "admin"}', '--match-type', 'json', '--match', "role == 'admin'")
        project_id = _root(catalog_path)['projects'][0]['id']
        capsys.readouterr()

        run(catalog_path, 'send', project_id, 'POST', '/users', '--body', '{"role": "admin"}')

        out = capsys.readouterr().out
        assert 'POST /users -> 201' in out
        assert 'Response: Admin' in out

    def test_add_response_headers_and_fixed_delay(self, catalog_path, endpoint_id):
        run(catalog_path, 'add-response', endpoint_id, 'Slow', '--delay', '250', '-H', 'X-Trace: abc')
        response = _root(catalog_path)['responses'][0]

        assert response['delayMode'] == 'fixed'
        assert response['delay'] == 250
        assert response['headers']['X-Trace'] == 'abc'
        assert response['body'] == '{}'

    def test_add_response_random_delay(self, catalog_path, endpoint_id):
        run(catalog_path, 'add-response', endpoint_id, 'Jittery', '--delay-min', '10', '--delay-max', '40')
        response = _root(catalog_path)['responses'][0]

        assert response['delayMode'] == 'random'
        assert response['delayMin'] == 10
        assert response['delayMax'] == 40

    def test_match_requires_match_type(self, catalog_path, endpoint_id, capsys):
        with pytest.raises(SystemExit) as exc:
            run(catalog_path, 'add-response', endpoint_id, 'Bad', '--match', 'role')

        assert exc.value.code == 1
        assert '--match requires --match-type' in capsys.readouterr().out
        assert _root(catalog_path)['responses'] == []

    def test_add_response_unknown_endpoint(self, catalog_path, capsys):
        with pytest.raises(SystemExit):
            run(catalog_path, 'add-response', 'missing', 'Nope')

        assert 'Endpoint not found' in capsys.readouterr().out

    def test_set_default(self, catalog_path, endpoint_id, capsys):
        run(catalog_path, 'add-response', endpoint_id, 'First')
        run(catalog_path, 'add-response', endpoint_id, 'Second')
        first, second = _root(catalog_path)['responses']
        assert _root(catalog_path)['endpoints'][0]['defaultResponseId'] == first['id']

        run(catalog_path, 'set-default', endpoint_id, second['id'])
        assert _root(catalog_path)['endpoints'][0]['defaultResponseId'] == second['id']

        capsys.readouterr()
        run(catalog_path, 'responses', endpoint_id)
        out = capsys.readouterr().out
        assert '2 responses' in out
        assert "⭐ 200  Second" in out

    def test_add_response_as_default(self, catalog_path, endpoint_id):
        run(catalog_path, 'add-response', endpoint_id, 'First')
        run(catalog_path, 'add-response', endpoint_id, 'Second', '--default')
        second = _root(catalog_path)['responses'][1]

        assert _root(catalog_path)['endpoints'][0]['defaultResponseId'] == second['id']

    def test_set_default_foreign_response(self, catalog_path, endpoint_id, capsys):
        with pytest.raises(SystemExit) as exc:
            run(catalog_path, 'set-default', endpoint_id, 'missing')

        assert exc.value.code == 1
        assert 'does not belong' in capsys.readouterr().out

    def test_rm_response(self, catalog_path, endpoint_id):
        run(catalog_path, 'add-response', endpoint_id, 'Gone')
        response_id = _root(catalog_path)['responses'][0]['id']

        run(catalog_path, 'rm-response', response_id)

        assert _root(catalog_path)['responses'] == []
        with pytest.raises(SystemExit):
            run(catalog_path, 'rm-response', response_id)

    def test_rm_endpoint_removes_responses(self, catalog_path, endpoint_id):
        run(catalog_path, 'add-response', endpoint_id, 'One')
        run(catalog_path, 'add-response', endpoint_id, 'Two')

        run(catalog_path, 'rm-endpoint', endpoint_id)

        root = _root(catalog_path)
        assert root['endpoints'] == []
        assert root['responses'] == []
