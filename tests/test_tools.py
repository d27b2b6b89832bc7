"""Tests for the tool system: base, registry and the gate tools."""

import json

import pytest
import pytest_asyncio
from typing import Any

from sqlgate.db.sqlite import SQLiteAdapter
from sqlgate.gateway import ExecutionGateway, GatewayResult, GatewayStatus
from sqlgate.safety.audit import AuditLogger
from sqlgate.safety.policy import SecurityPolicy
from sqlgate.tools import build_default_registry
from sqlgate.tools.base import GatewayTool, Tool, render_result
from sqlgate.tools.preview import PreviewDataTool
from sqlgate.tools.registry import ToolRegistry


# -- Helpers ------------------------------------------------------------------

class EchoTool(Tool):
    """Echoes its message back."""

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo back the message."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "The message to echo."},
                "times": {"type": "integer", "minimum": 1, "maximum": 3},
            },
            "required": ["message"],
        }

    async def execute(self, message: str, times: int = 1, **kwargs: Any) -> str:
        return " ".join([f"echo: {message}"] * times)


class ErrorTool(Tool):
    """Always raises."""

    @property
    def name(self) -> str:
        return "fail"

    @property
    def description(self) -> str:
        return "Always fails."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs: Any) -> str:
        raise RuntimeError("intentional failure")


@pytest_asyncio.fixture
async def populated_db(tmp_path):
    """SQLite adapter with a small users table."""
    adapter = SQLiteAdapter()
    await adapter.connect(database=str(tmp_path / "tools_test.db"))
    await adapter.execute(
        "CREATE TABLE users ("
        "id INTEGER PRIMARY KEY, "
        "name TEXT NOT NULL, "
        "team TEXT, "
        "age INTEGER DEFAULT 0"
        ")"
    )
    await adapter.execute("INSERT INTO users VALUES (1, 'Alice', 'db', 30)")
    await adapter.execute("INSERT INTO users VALUES (2, 'Bob', 'db', 25)")
    await adapter.execute("INSERT INTO users VALUES (3, 'Charlie', NULL, 35)")
    yield adapter
    await adapter.close()


def _registry(db, tmp_path, modifications=False, procedures=False, max_rows=100):
    gateway = ExecutionGateway(
        db,
        policy=SecurityPolicy(allow_modifications=modifications, allow_stored_procedures=procedures),
        audit=AuditLogger(tmp_path / "audit.log"),
    )
    return build_default_registry(gateway, db, max_rows=max_rows)


def _token(output: str) -> str:
    for line in output.splitlines():
        if line.startswith("With token: "):
            return line.removeprefix("With token: ").strip()
    raise AssertionError(f"no token in output:\n{output}")


def _payload(output: str) -> dict:
    return json.loads(output.split("\n\n", 1)[1])


# -- Tool base ----------------------------------------------------------------

class TestToolBase:
    def test_to_schema(self):
        schema = EchoTool().to_schema()
        assert schema["type"] == "function"
        assert schema["function"]["name"] == "echo"
        assert "message" in schema["function"]["parameters"]["properties"]

    def test_validate_params_valid(self):
        assert EchoTool().validate_params({"message": "hello"}) == []

    def test_validate_params_missing_required(self):
        errors = EchoTool().validate_params({})
        assert any("missing required message" in e for e in errors)

    def test_validate_params_wrong_type(self):
        errors = EchoTool().validate_params({"message": 123})
        assert any("should be string" in e for e in errors)

    def test_validate_params_range(self):
        errors = EchoTool().validate_params({"message": "x", "times": 9})
        assert errors == ["times must be <= 3"]

    def test_bool_is_not_an_integer(self):
        errors = EchoTool().validate_params({"message": "x", "times": True})
        assert errors == ["times should be integer"]

    def test_null_optional_is_accepted(self):
        assert EchoTool().validate_params({"message": "x", "times": None}) == []

    def test_null_required_is_missing(self):
        assert EchoTool().validate_params({"message": None}) == ["missing required message"]

    def test_undeclared_params_are_ignored(self):
        assert EchoTool().validate_params({"message": "x", "extra": object()}) == []

    def test_gateway_tools_share_row_limit(self, tmp_path):
        registry = _registry(SQLiteAdapter(), tmp_path, max_rows=7)
        for name in ("execute_query", "execute_procedure", "confirm_and_execute"):
            tool = registry.get(name)
            assert isinstance(tool, GatewayTool)
            assert tool._max_rows == 7


# -- Tool registry ------------------------------------------------------------

class TestToolRegistry:
    def test_register_and_get(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        assert reg.has("echo")
        assert reg.get("echo") is not None
        assert "echo" in reg
        assert "missing" not in reg
        assert len(reg) == 1

    def test_unregister(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        reg.unregister("echo")
        reg.unregister("echo")
        assert len(reg) == 0

    def test_tool_names_and_definitions(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        reg.register(ErrorTool())
        assert set(reg.tool_names) == {"echo", "fail"}
        assert [d["function"]["name"] for d in reg.get_definitions()] == ["echo", "fail"]

    @pytest.mark.asyncio
    async def test_execute_success(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        assert await reg.execute("echo", {"message": "hi", "times": 2}) == "echo: hi echo: hi"

    @pytest.mark.asyncio
    async def test_execute_not_found(self):
        result = await ToolRegistry().execute("missing", {})
        assert result == "Error: Tool 'missing' not found"

    @pytest.mark.asyncio
    async def test_execute_invalid_params(self):
        reg = ToolRegistry()
        reg.register(EchoTool())
        result = await reg.execute("echo", {})
        assert result.startswith("Error: Invalid parameters for tool 'echo'")

    @pytest.mark.asyncio
    async def test_execute_tool_error(self):
        reg = ToolRegistry()
        reg.register(ErrorTool())
        result = await reg.execute("fail", {})
        assert result == "Error executing fail: intentional failure"


class TestDefaultRegistry:
    def test_registers_gate_tools(self, tmp_path):
        reg = _registry(SQLiteAdapter(), tmp_path)
        assert set(reg.tool_names) == {
            "execute_query",
            "execute_procedure",
            "confirm_and_execute",
            "get_security_status",
            "preview_data",
        }


# -- render_result ------------------------------------------------------------

class TestRenderResult:
    def test_executed(self):
        result = GatewayResult(
            status=GatewayStatus.EXECUTED, message="done", rows=[{"id": 1}], rows_affected=0,
        )
        text = render_result(result)
        assert text.startswith("done\n\n")
        assert _payload(text) == {"rows_affected": 0, "row_count": 1, "rows": [{"id": 1}]}

    def test_executed_truncates_rows(self):
        rows = [{"id": i} for i in range(5)]
        text = render_result(GatewayResult(status=GatewayStatus.EXECUTED, rows=rows), max_rows=2)
        assert "... (3 more rows)" in text
        assert '"row_count": 5' in text

    def test_awaiting(self):
        text = render_result(GatewayResult(status=GatewayStatus.AWAITING_CONFIRMATION, message="m"))
        assert text == "SECURITY_CONFIRMATION_REQUIRED: m"

    @pytest.mark.parametrize("status", [
        GatewayStatus.BLOCKED, GatewayStatus.EXPIRED, GatewayStatus.FAILED,
    ])
    def test_errors(self, status):
        assert render_result(GatewayResult(status=status, message="nope")) == "Error: nope"


# -- Gate tools ---------------------------------------------------------------

@pytest.mark.asyncio
class TestExecuteQueryTool:
    async def test_select(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path)
        output = await reg.execute("execute_query", {"query": "SELECT name FROM users ORDER BY id"})
        payload = _payload(output)
        assert payload["row_count"] == 3
        assert payload["rows"][0] == {"name": "Alice"}

    async def test_delete_blocked_by_default(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path)
        output = await reg.execute("execute_query", {"query": "DELETE FROM users WHERE id = 1"})
        assert output.startswith("Error: [X] OPERATION BLOCKED")
        count = await populated_db.execute("SELECT COUNT(*) FROM users")
        assert count.rows[0][0] == 3

    async def test_propose_then_confirm(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path, modifications=True)
        output = await reg.execute("execute_query", {"query": "DELETE FROM users WHERE team = 'db'"})
        assert output.startswith("SECURITY_CONFIRMATION_REQUIRED:")
        assert "Estimated affected rows: 2" in output
        assert "Affected tables: users" in output

        count = await populated_db.execute("SELECT COUNT(*) FROM users")
        assert count.rows[0][0] == 3

        confirmed = await reg.execute("confirm_and_execute", {"confirmation_token": _token(output)})
        assert confirmed.startswith("Operation executed successfully. 2 rows affected.")
        count = await populated_db.execute("SELECT COUNT(*) FROM users")
        assert count.rows[0][0] == 1

    async def test_confirm_twice(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path, modifications=True)
        output = await reg.execute("execute_query", {"query": "UPDATE users SET age = 0 WHERE id = 2"})
        token = _token(output)
        await reg.execute("confirm_and_execute", {"confirmation_token": token})
        again = await reg.execute("confirm_and_execute", {"confirmation_token": token})
        assert again.startswith("Error: Invalid or expired confirmation token")

    async def test_sql_error(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path)
        output = await reg.execute("execute_query", {"query": "SELECT * FROM nonexistent"})
        assert output.startswith("Error:")
        assert "nonexistent" in output

    async def test_missing_query_param(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path)
        output = await reg.execute("execute_query", {})
        assert "Invalid parameters" in output


@pytest.mark.asyncio
class TestExecuteProcedureTool:
    async def test_blocked_when_disabled(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path)
        output = await reg.execute("execute_procedure", {"sp_name": "usp_GetUsers"})
        assert output.startswith("Error: [X] OPERATION BLOCKED: Stored procedure execution")
        assert "DB_ALLOW_STORED_PROCEDURES" in output

    async def test_sqlite_has_no_procedures(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path, procedures=True)
        output = await reg.execute("execute_procedure", {"sp_name": "usp_GetUsers"})
        assert output == "Error: SQLite does not support stored procedures"

    async def test_write_procedure_needs_confirmation(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path, procedures=True)
        output = await reg.execute(
            "execute_procedure", {"sp_name": "usp_Purge", "params": {"days": 30}},
        )
        assert output.startswith("SECURITY_CONFIRMATION_REQUIRED:")
        assert 'Parameters: {"days": 30}' in output
        assert "Unknown - Stored Procedure" in output

    async def test_params_must_be_object(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path, procedures=True)
        output = await reg.execute("execute_procedure", {"sp_name": "x", "params": [1]})
        assert "params should be object" in output


@pytest.mark.asyncio
class TestSecurityStatusTool:
    async def test_reports_level(self, populated_db, tmp_path, monkeypatch):
        monkeypatch.delenv("DB_ALLOW_MODIFICATIONS", raising=False)
        monkeypatch.setenv("DB_ALLOW_STORED_PROCEDURES", "true")
        reg = _registry(populated_db, tmp_path, procedures=True)
        data = json.loads(await reg.execute("get_security_status", {}))
        config = data["security_configuration"]
        assert config["security_level"] == "MEDIUM"
        assert config["stored_procedures_enabled"] is True
        assert data["environment_variables"]["DB_ALLOW_STORED_PROCEDURES"] == "true"
        assert data["environment_variables"]["DB_ALLOW_MODIFICATIONS"].startswith("not set")
        assert data["configuration_guide"]["security_best_practices"]


@pytest.mark.asyncio
class TestPreviewDataTool:
    async def test_preview(self, populated_db, tmp_path):
        reg = _registry(populated_db, tmp_path)
        output = await reg.execute("preview_data", {"table_name": "users"})
        assert output.startswith("Preview of users: 3 row(s)")

    async def test_filters(self, populated_db):
        tool = PreviewDataTool(populated_db)
        output = await tool.execute(table_name="users", filters={"team": "db", "age": 25})
        rows = json.loads(output.split("\n\n", 1)[1])
        assert rows == [{"id": 2, "name": "Bob", "team": "db", "age": 25}]

    async def test_null_filter(self, populated_db):
        tool = PreviewDataTool(populated_db)
        output = await tool.execute(table_name="users", filters={"team": None})
        assert "Charlie" in output
        assert "1 row(s)" in output

    async def test_limit_capped(self, populated_db):
        tool = PreviewDataTool(populated_db, max_rows=2)
        output = await tool.execute(table_name="users", limit=50)
        assert "2 row(s)" in output

    async def test_no_rows(self, populated_db):
        tool = PreviewDataTool(populated_db)
        output = await tool.execute(table_name="users", filters={"name": "Nobody"})
        assert output == "Preview of users: (no rows)"

    async def test_missing_table(self, populated_db):
        output = await PreviewDataTool(populated_db).execute(table_name="ghosts")
        assert output.startswith("Error:")


class TestPreviewQueryBuilder:
    def test_build_query(self):
        sql, params = PreviewDataTool(SQLiteAdapter()).build_query(
            "main.users", {"team": "db", "age": None}, 10,
        )
        assert sql == 'SELECT * FROM "main"."users" WHERE "team" = ? AND "age" IS NULL LIMIT 10'
        assert params == ("db",)

    def test_mysql_quoting(self):
        from sqlgate.db.mysql import MySQLAdapter

        sql, params = PreviewDataTool(MySQLAdapter()).build_query("[dbo].[users]", {"id": 1}, 5)
        assert sql == "SELECT * FROM `dbo`.`users` WHERE `id` = %s LIMIT 5"
        assert params == (1,)
