"""
Configuration dataclass for a capability server process.

Immutable config object built once at startup (see ``life_mcp.server.load_config``)
and passed down explicitly. Validation happens in ``__post_init__`` so a bad
configuration fails before any store is opened.
"""

from dataclasses import dataclass

# Server domains this repository can run.
VALID_DOMAINS: frozenset[str] = frozenset({"logs", "moods", "projects"})

# Domains whose records must survive restarts: a storage location is mandatory.
PERSISTENT_DOMAINS: frozenset[str] = frozenset({"moods", "projects"})

VALID_LLM_PROVIDERS: frozenset[str] = frozenset({"openai", "anthropic"})

VALID_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR"})


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for one capability server.

    Attributes:
        domain: Which server to run: "logs", "moods" or "projects".
        database_url: SQLAlchemy URL of the store (e.g. ``sqlite:///data/moods.db``).
            Required for persistent domains; when absent the logs server keeps
            entries in memory.
        llm_provider: AI collaborator backend, "openai" or "anthropic".
        llm_api_key: API key for the provider. No key = AI processing disabled.
        llm_base_url: Optional OpenAI-compatible base URL.
        llm_model: Optional model override (provider default otherwise).
        handler_timeout_seconds: Optional bound on a single handler invocation.
        log_level: Root logging level name.

    Example:
        >>> config = ServerConfig(domain="moods", database_url="sqlite:///moods.db")
    """

    domain: str
    database_url: str | None = None
    llm_provider: str = "openai"
    llm_api_key: str | None = None
    llm_base_url: str | None = None
    llm_model: str | None = None
    handler_timeout_seconds: float | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.domain not in VALID_DOMAINS:
            raise ValueError(
                f"Unknown domain {self.domain!r}, valid options: {sorted(VALID_DOMAINS)}"
            )
        if self.domain in PERSISTENT_DOMAINS and not self.database_url:
            raise ValueError(
                f"The {self.domain!r} server needs a storage location "
                "(set LIFE_DUMP_DATABASE_URL or DATABASE_URL)"
            )
        if self.llm_provider not in VALID_LLM_PROVIDERS:
            raise ValueError(
                f"Unknown llm_provider {self.llm_provider!r}, "
                f"valid options: {sorted(VALID_LLM_PROVIDERS)}"
            )
        if self.handler_timeout_seconds is not None and self.handler_timeout_seconds <= 0:
            raise ValueError(
                f"handler_timeout_seconds must be positive, got {self.handler_timeout_seconds}"
            )
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Unknown log_level {self.log_level!r}, valid options: {sorted(VALID_LOG_LEVELS)}"
            )

    @property
    def ai_enabled(self) -> bool:
        return bool(self.llm_api_key)
