"""
Life-dump MCP servers — entrypoint.

One process runs one capability server:
    logs      log ingestion (+ optional AI processing), in-memory unless a
              database URL is configured
    moods     mood tracking, SQL-backed
    projects  projects and tasks, SQL-backed

Startup:
    1. Configure logging (stderr only — stdout is reserved for JSON-RPC)
    2. Load ServerConfig from the environment (.env honoured)
    3. Open the stores and build the registry for the chosen domain
    4. Negotiate capabilities and build the MCP server
    5. Serve over stdio

Exit status is 0 after a normal shutdown and 1 when startup fails
(bad configuration, unreachable storage, failed negotiation).

Running:
    python -m life_mcp.server moods
    LIFE_DUMP_DATABASE_URL=sqlite:///life.db python -m life_mcp.server projects

Claude Desktop config (~/.../claude_desktop_config.json):
    {
        "mcpServers": {
            "life-dump-projects": {
                "command": "/absolute/path/.venv/bin/python",
                "args": ["-m", "life_mcp.server", "projects"],
                "cwd": "/absolute/path/to/life-dump",
                "env": {"LIFE_DUMP_DATABASE_URL": "sqlite:////absolute/path/life.db"}
            }
        }
    }
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping, Sequence

from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from core.config import VALID_DOMAINS, VALID_LOG_LEVELS, ServerConfig
from core.errors import StartupError
from core.generation.base import GenerationProvider
from core.records import LogEntry, MoodEntry, Project, Task
from core.store import InMemoryStore, Store
from db.init_db import init_db
from db.session import create_engine_for, make_session_factory
from db.store import LOG_MAPPING, MOOD_MAPPING, PROJECT_MAPPING, TASK_MAPPING, SqlStore
from ingestion.generation import create_generation_provider
from life_mcp.negotiation import NegotiationError
from life_mcp.registry import Registry
from life_mcp.session import Session
from life_mcp.transport import build_mcp_server, configure_logging, run_stdio
from tools.logs import LogTools
from tools.moods import MoodTools
from tools.projects import ProjectTools
from tools.rules import PROJECTS_RULE, RuleTools

logger = logging.getLogger(__name__)

_SERVER_VERSION = "1.0.0"

_API_KEY_VARS = {"openai": "OPENAI_API_KEY", "anthropic": "ANTHROPIC_API_KEY"}


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def load_config(
    domain: str,
    *,
    log_level: str | None = None,
    env: Mapping[str, str] | None = None,
) -> ServerConfig:
    """
    Build the ServerConfig for ``domain`` from environment variables.

    Args:
        domain: "logs", "moods" or "projects"
        log_level: Overrides LIFE_DUMP_LOG_LEVEL when given
        env: Variables to read (defaults to os.environ after loading .env)

    Raises:
        ValueError: If a value is missing or malformed
    """
    if env is None:
        load_dotenv()
        env = os.environ

    provider = env.get("LLM_PROVIDER", "openai").lower().strip()
    raw_timeout = env.get("LIFE_DUMP_HANDLER_TIMEOUT")
    try:
        timeout = float(raw_timeout) if raw_timeout else None
    except ValueError as exc:
        raise ValueError(f"LIFE_DUMP_HANDLER_TIMEOUT must be a number, got {raw_timeout!r}") from exc

    return ServerConfig(
        domain=domain,
        database_url=env.get("LIFE_DUMP_DATABASE_URL") or env.get("DATABASE_URL") or None,
        llm_provider=provider,
        llm_api_key=env.get(_API_KEY_VARS.get(provider, "")) or None,
        llm_base_url=env.get("OPENAI_BASE_URL") or None,
        llm_model=env.get("LLM_MODEL") or None,
        handler_timeout_seconds=timeout,
        log_level=(log_level or env.get("LIFE_DUMP_LOG_LEVEL") or "INFO").upper(),
    )


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------


def _register_all(registry: Registry, descriptors: Sequence) -> Registry:
    for descriptor in descriptors:
        registry.register(descriptor)
    return registry


def build_logs_registry(
    store: Store[LogEntry], provider: GenerationProvider | None = None
) -> Registry:
    return _register_all(Registry(), LogTools(store, provider).descriptors())


def build_moods_registry(store: Store[MoodEntry]) -> Registry:
    registry = Registry()
    _register_all(registry, MoodTools(store).descriptors())
    return _register_all(registry, RuleTools(registry).descriptors())


def build_projects_registry(projects: Store[Project], tasks: Store[Task]) -> Registry:
    registry = Registry()
    _register_all(registry, ProjectTools(projects, tasks).descriptors())
    _register_all(registry, RuleTools(registry).descriptors())
    registry.register_rule(PROJECTS_RULE)
    return registry


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def _open_session_factory(url: str):
    try:
        engine = create_engine_for(url)
        init_db(engine)
    except SQLAlchemyError as exc:
        raise StartupError(f"Cannot open storage at {url!r}: {exc}") from exc
    return make_session_factory(engine)


def build_registry(config: ServerConfig) -> Registry:
    """
    Open the stores for ``config.domain`` and register its capabilities.

    Raises:
        StartupError: If storage cannot be opened or the AI provider cannot be built
    """
    if config.domain == "logs":
        if config.database_url:
            store: Store[LogEntry] = SqlStore(
                LogEntry, LOG_MAPPING, _open_session_factory(config.database_url)
            )
        else:
            logger.warning("No database URL configured; log entries are kept in memory")
            store = InMemoryStore(LogEntry)
        provider = None
        if config.ai_enabled:
            try:
                provider = create_generation_provider(
                    config.llm_provider,
                    model=config.llm_model,
                    api_key=config.llm_api_key,
                    base_url=config.llm_base_url,
                )
            except ValueError as exc:
                raise StartupError(str(exc)) from exc
        else:
            logger.info("No LLM API key configured; AI processing disabled")
        return build_logs_registry(store, provider)

    factory = _open_session_factory(config.database_url or "")
    if config.domain == "moods":
        return build_moods_registry(SqlStore(MoodEntry, MOOD_MAPPING, factory))
    return build_projects_registry(
        SqlStore(Project, PROJECT_MAPPING, factory),
        SqlStore(Task, TASK_MAPPING, factory),
    )


def build_session(config: ServerConfig) -> Session:
    registry = build_registry(config)
    logger.info("Built %s server — %d tools registered", config.domain, len(registry))
    return Session(
        registry,
        name=f"life-dump-{config.domain}",
        version=_SERVER_VERSION,
        handler_timeout=config.handler_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Main entrypoint
# ---------------------------------------------------------------------------


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="life_mcp.server", description="Run one life-dump MCP server over stdio."
    )
    parser.add_argument("domain", choices=sorted(VALID_DOMAINS))
    parser.add_argument(
        "--log-level",
        choices=sorted(VALID_LOG_LEVELS),
        type=str.upper,
        default=None,
        help="Overrides LIFE_DUMP_LOG_LEVEL",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Start the server for the chosen domain; return the process exit status."""
    args = _parse_args(argv)
    configure_logging(args.log_level or logging.INFO)

    try:
        config = load_config(args.domain, log_level=args.log_level)
        logging.getLogger().setLevel(config.log_level)
        session = build_session(config)
        session.handshake()
        server = build_mcp_server(session)
    except (StartupError, NegotiationError, ValueError) as exc:
        logger.error("Startup failed: %s", exc)
        return 1

    try:
        asyncio.run(run_stdio(server))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
