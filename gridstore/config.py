"""
Configuration management for GridStore.

Settings come from environment variables only. Each section is a frozen
dataclass with a from_env constructor; ServerConfig ties them together
and checks cross-field consistency.

Invariants:
    - Every setting has a default that works for a local checkout
    - Production deployments should set GRIDSTORE_DB_PATH explicitly

How to change safely:
    - New settings need a default so existing deployments keep starting
    - Document new variables in the class docstring
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageConfig:
    """SQLite storage configuration.

    Attributes:
        db_path: Path of the SQLite database file
        wal_mode: Use write-ahead logging
        busy_timeout_ms: How long a connection waits on a locked database
        cache_size_pages: Page cache size (negative values are KiB)
    """

    db_path: str = "/var/lib/gridstore/grid.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Read this section from the environment."""
        return cls(
            db_path=os.getenv("GRIDSTORE_DB_PATH", "/var/lib/gridstore/grid.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-64000")),
        )


@dataclass(frozen=True)
class WriteConfig:
    """Retry policy for row-structural mutations.

    Attributes:
        max_retries: Retries after a ConflictError before giving up
        retry_delay_ms: Base delay between retries (doubled each attempt)
    """

    max_retries: int = 3
    retry_delay_ms: int = 50

    @classmethod
    def from_env(cls) -> WriteConfig:
        """Read this section from the environment."""
        return cls(
            max_retries=int(os.getenv("WRITE_MAX_RETRIES", "3")),
            retry_delay_ms=int(os.getenv("WRITE_RETRY_DELAY_MS", "50")),
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Address to bind
        port: Port to listen on
        cors_origins: Allowed CORS origins ("*" allows any)
        default_page_size: Rows per page when the request sets no limit
        max_page_size: Upper bound on the requested page size
    """

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: tuple[str, ...] = ("*",)
    default_page_size: int = 10
    max_page_size: int = 500

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Read this section from the environment."""
        origins = os.getenv("HTTP_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            default_page_size=int(os.getenv("HTTP_DEFAULT_PAGE_SIZE", "10")),
            max_page_size=int(os.getenv("HTTP_MAX_PAGE_SIZE", "500")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Root logger level name
        log_format: "json" for structured output, "text" for humans
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Read this section from the environment."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Top-level configuration for gridstore-server.

    Attributes:
        storage: SQLite storage configuration
        write: Conflict retry policy
        http: HTTP server configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    write: WriteConfig = field(default_factory=WriteConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build every section from the environment and validate the result.

        Returns:
            A validated ServerConfig.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            write=WriteConfig.from_env(),
            http=HttpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Reject settings the server cannot run with.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.storage.db_path:
            raise ValueError("GRIDSTORE_DB_PATH must not be empty")
        if self.storage.busy_timeout_ms < 0:
            raise ValueError("SQLITE_BUSY_TIMEOUT_MS must be >= 0")
        if self.write.max_retries < 0:
            raise ValueError("WRITE_MAX_RETRIES must be >= 0")
        if not 0 < self.http.port < 65536:
            raise ValueError(f"HTTP_PORT out of range: {self.http.port}")
        if not 0 < self.http.default_page_size <= self.http.max_page_size:
            raise ValueError("HTTP_DEFAULT_PAGE_SIZE must be between 1 and HTTP_MAX_PAGE_SIZE")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        db_dir = os.path.dirname(self.storage.db_path)
        if db_dir and not os.path.exists(db_dir):
            logger.warning(
                f"Database directory does not exist: {db_dir}. "
                "It is created when the store initializes."
            )

    def log_config(self) -> None:
        """Log the effective settings at INFO."""
        logger.info(
            "GridStore configuration",
            extra={
                "db_path": self.storage.db_path,
                "wal_mode": self.storage.wal_mode,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "max_retries": self.write.max_retries,
                "log_level": self.observability.log_level,
            },
        )
