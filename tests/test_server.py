import json, os
import pytest
import mcp.types as types

from backend.base_backend import ColumnInfo, TableInfo, text_payload
from backend.config import AppConfig
from backend.errors import InvalidResourceError, QueryError, UnknownToolError
from dbserver.server import DatabaseMCPServer, main


class StubBackend:
    kind = "mysql"
    host = "db.local"
    port = 3306

    def __init__(self):
        self.connected = False
        self.disconnects = 0
        self.fail_with = None

    @property
    def is_connected(self):
        return self.connected

    async def connect(self):
        self.connected = True

    async def disconnect(self):
        self.disconnects += 1
        self.connected = False

    async def list_tables(self):
        return [TableInfo("users")]

    async def get_table_schema(self, table_name):
        return [ColumnInfo("id", "int")]

    async def execute_read_only_query(self, sql):
        if self.fail_with:
            raise self.fail_with
        return text_payload('[{"n": 1}]')


@pytest.fixture()
def app():
    return DatabaseMCPServer(AppConfig(server_name="test-db", server_version="9.9"), backend=StubBackend())


@pytest.fixture()
def environ(monkeypatch, tmp_path):
    # load_dotenv writes into os.environ; give each test a private copy
    monkeypatch.setattr(os, "environ", dict(os.environ))
    monkeypatch.chdir(tmp_path)
    return os.environ


def test_server_identity(app):
    assert app.server.name == "test-db"
    assert app.server.version == "9.9"


@pytest.mark.asyncio
async def test_list_resources(app):
    resources = await app.handle_list_resources()
    assert len(resources) == 1
    r = resources[0]
    assert isinstance(r, types.Resource)
    assert str(r.uri) == "mysql://db.local:3306/users/schema"
    assert r.mimeType == "application/json"
    assert r.name == '"users" database table schema'


@pytest.mark.asyncio
async def test_read_resource(app):
    contents = await app.handle_read_resource("mysql://db.local:3306/users/schema")
    assert json.loads(contents[0].content) == [{"name": "id", "data_type": "int"}]
    assert contents[0].mime_type == "application/json"


@pytest.mark.asyncio
async def test_read_resource_bad_suffix(app):
    with pytest.raises(InvalidResourceError):
        await app.handle_read_resource("mysql://db.local:3306/users/data")


@pytest.mark.asyncio
async def test_list_tools(app):
    tools = await app.handle_list_tools()
    assert [t.name for t in tools] == ["db_query"]
    assert tools[0].inputSchema["required"] == ["sql"]


@pytest.mark.asyncio
async def test_call_tool_success(app):
    out = await app.handle_call_tool("db_query", {"sql": "SELECT 1 AS n"})
    assert [c.type for c in out] == ["text"]
    assert json.loads(out[0].text) == [{"n": 1}]


@pytest.mark.asyncio
async def test_call_tool_failure_raises_with_error_text(app):
    app.backend.fail_with = QueryError("Table 'shop.nope' doesn't exist")
    with pytest.raises(QueryError) as exc:
        await app.handle_call_tool("db_query", {"sql": "SELECT * FROM nope"})
    assert str(exc.value) == "Query execution error: Table 'shop.nope' doesn't exist"


@pytest.mark.asyncio
async def test_call_unknown_tool(app):
    with pytest.raises(UnknownToolError):
        await app.handle_call_tool("other", {})


@pytest.mark.asyncio
async def test_context_exit_disconnects(app):
    async with app:
        await app.handle_list_resources()
        assert app.backend.is_connected
    assert app.backend.disconnects == 1
    assert not app.backend.is_connected


def test_factory_used_when_no_backend_given():
    app = DatabaseMCPServer(AppConfig.from_env({"DB_TYPE": "postgres"}))
    assert app.backend.kind == "postgres"
    assert not app.backend.is_connected


def test_main_dump_config(environ, capsys):
    environ["MYSQL_PASS"] = "hunter2"
    assert main(["--dump-config"]) == 0
    out = capsys.readouterr().out
    data = json.loads(out)
    assert data["db_type"] == "mysql"
    assert data["mysql"]["password"] == "***"
    assert "hunter2" not in out


def test_main_loads_env_file(environ, tmp_path, capsys):
    env_file = tmp_path / "prod.env"
    env_file.write_text("DB_TYPE=postgres\nPG_HOST=pg.internal\n", encoding="utf-8")
    assert main(["--env-file", str(env_file), "--dump-config"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["db_type"] == "postgres"
    assert data["postgres"]["host"] == "pg.internal"


def test_main_process_env_wins_over_dotenv(environ, tmp_path, capsys):
    (tmp_path / ".env").write_text("DB_TYPE=postgres\n", encoding="utf-8")
    environ["DB_TYPE"] = "mysql"
    assert main(["--dump-config"]) == 0
    assert json.loads(capsys.readouterr().out)["db_type"] == "mysql"


def test_main_missing_env_file(environ, tmp_path, capsys):
    assert main(["--env-file", str(tmp_path / "absent.env")]) == 1
    assert "env_file_missing" in capsys.readouterr().err


def test_main_unsupported_backend(environ, capsys):
    environ["DB_TYPE"] = "oracle"
    assert main([]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "oracle" in captured.err and "server_init_failed" in captured.err
