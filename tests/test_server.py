"""
Tests for life_mcp/server.py — per-domain wiring and process exit status.

No stdio transport is started: ``run_stdio`` is patched out.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.config import ServerConfig
from core.errors import StartupError
from core.store import InMemoryStore
from db.store import SqlStore
from life_mcp.negotiation import NegotiationError
from life_mcp.server import build_registry, build_session, main

_LOGS_TOOLS = {"insertLog", "queryLogs", "deleteLog"}
_MOODS_TOOLS = {"logMood", "getMoods", "registerRule", "unregisterRule", "listRules"}
_PROJECT_TOOLS = {
    "createProject",
    "createTask",
    "createProjectWithTasks",
    "getProjectTasks",
    "getTasksDueInPeriod",
    "updateTaskStatus",
    "updateProjectStatus",
    "registerRule",
    "unregisterRule",
    "listRules",
}


class TestBuildRegistry:
    def test_logs_in_memory_without_url(self) -> None:
        registry = build_registry(ServerConfig(domain="logs"))
        assert set(registry.list_tools()) == _LOGS_TOOLS
        tool = registry.resolve_tool("insertLog")
        assert isinstance(tool.handler.__self__._store, InMemoryStore)

    def test_logs_with_url_uses_sql(self, sqlite_url: str) -> None:
        registry = build_registry(ServerConfig(domain="logs", database_url=sqlite_url))
        tool = registry.resolve_tool("insertLog")
        assert isinstance(tool.handler.__self__._store, SqlStore)

    def test_moods(self, sqlite_url: str) -> None:
        registry = build_registry(ServerConfig(domain="moods", database_url=sqlite_url))
        assert set(registry.list_tools()) == _MOODS_TOOLS
        assert registry.resolve_resource("moods://all") is not None

    def test_projects(self, sqlite_url: str) -> None:
        registry = build_registry(ServerConfig(domain="projects", database_url=sqlite_url))
        assert set(registry.list_tools()) == _PROJECT_TOOLS
        assert [r.name for r in registry.rules()] == ["projects"]

    def test_unreachable_storage(self, tmp_path) -> None:
        url = f"sqlite:///{tmp_path / 'missing-dir' / 'life.db'}"
        with pytest.raises(StartupError, match="Cannot open storage"):
            build_registry(ServerConfig(domain="moods", database_url=url))

    @patch("life_mcp.server.create_generation_provider")
    def test_ai_provider_built_when_key_present(self, mock_factory: MagicMock) -> None:
        build_registry(ServerConfig(domain="logs", llm_api_key="sk", llm_model="gpt-4o"))
        mock_factory.assert_called_once_with("openai", model="gpt-4o", api_key="sk", base_url=None)

    def test_session_named_after_domain(self) -> None:
        session = build_session(ServerConfig(domain="logs", handler_timeout_seconds=5))
        assert session.name == "life-dump-logs"


class TestMain:
    @patch("life_mcp.server.run_stdio", new_callable=AsyncMock)
    @patch("life_mcp.server.load_dotenv")
    def test_normal_shutdown_exits_zero(self, _dotenv: MagicMock, mock_run: AsyncMock, monkeypatch) -> None:
        for var in ("LIFE_DUMP_DATABASE_URL", "DATABASE_URL", "OPENAI_API_KEY", "LLM_PROVIDER"):
            monkeypatch.delenv(var, raising=False)
        assert main(["logs"]) == 0
        mock_run.assert_awaited_once()
        server = mock_run.await_args.args[0]
        assert server.name == "life-dump-logs"

    @patch("life_mcp.server.run_stdio", new_callable=AsyncMock)
    @patch("life_mcp.server.load_dotenv")
    @patch("life_mcp.server.Session.handshake", side_effect=NegotiationError("already negotiated"))
    def test_failed_negotiation_exits_one(
        self, _handshake: MagicMock, _dotenv: MagicMock, mock_run: AsyncMock, monkeypatch
    ) -> None:
        for var in ("LIFE_DUMP_DATABASE_URL", "DATABASE_URL", "OPENAI_API_KEY", "LLM_PROVIDER"):
            monkeypatch.delenv(var, raising=False)
        assert main(["logs"]) == 1
        mock_run.assert_not_awaited()

    @patch("life_mcp.server.run_stdio", new_callable=AsyncMock)
    @patch("life_mcp.server.load_dotenv")
    @patch("life_mcp.server.build_mcp_server", side_effect=NegotiationError("not negotiated"))
    def test_failed_server_build_exits_one(
        self, _build: MagicMock, _dotenv: MagicMock, mock_run: AsyncMock, monkeypatch
    ) -> None:
        for var in ("LIFE_DUMP_DATABASE_URL", "DATABASE_URL", "OPENAI_API_KEY", "LLM_PROVIDER"):
            monkeypatch.delenv(var, raising=False)
        assert main(["logs"]) == 1
        mock_run.assert_not_awaited()

    @patch("life_mcp.server.run_stdio", new_callable=AsyncMock)
    @patch("life_mcp.server.load_dotenv")
    def test_missing_storage_exits_one(self, _dotenv: MagicMock, mock_run: AsyncMock, monkeypatch) -> None:
        monkeypatch.delenv("LIFE_DUMP_DATABASE_URL", raising=False)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert main(["moods"]) == 1
        mock_run.assert_not_awaited()

    @patch("life_mcp.server.run_stdio", new_callable=AsyncMock)
    @patch("life_mcp.server.load_dotenv")
    def test_sql_domain_starts(self, _dotenv: MagicMock, mock_run: AsyncMock, monkeypatch, sqlite_url) -> None:
        monkeypatch.setenv("LIFE_DUMP_DATABASE_URL", sqlite_url)
        assert main(["projects", "--log-level", "debug"]) == 0

    def test_unknown_domain_is_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["music"])
        assert exc_info.value.code == 2
