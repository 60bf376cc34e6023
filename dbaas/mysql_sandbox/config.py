"""
Configuration management for the MySQL sandbox.

Provisioning options come from the command line; everything else (binary
locations, lifecycle timings, logging) is configured via environment
variables. This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for a stock Debian/Ubuntu MySQL install
    - Timings are positive; attempt ceilings are at least one
    - Settings written into mysql.cnf only apply when the file is first created

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Settings that end up in generated files (mysql.cnf, mysql.sh) only
      affect newly provisioned sandboxes
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_CHARACTER_SET = "utf8"
DEFAULT_COLLATION = "utf8_bin"


class EngineBackend(Enum):
    """Supported engine backends."""

    MYSQL = "mysql"
    MEMORY = "memory"


@dataclass(frozen=True)
class ToolPaths:
    """Locations of the engine's command-line tools.

    Attributes:
        mysqld: Server binary (also used for --initialize-insecure)
        mysql: Interactive client
        mysqlcheck: Table maintenance client
        python: Interpreter written into generated connect-wrappers
    """

    mysqld: str = "/usr/sbin/mysqld"
    mysql: str = "/usr/bin/mysql"
    mysqlcheck: str = "mysqlcheck"
    python: str = field(default_factory=lambda: sys.executable or "python3")

    @classmethod
    def from_env(cls) -> ToolPaths:
        """Load configuration from environment variables."""
        return cls(
            mysqld=os.getenv("MYSQLD_BIN", "/usr/sbin/mysqld"),
            mysql=os.getenv("MYSQL_BIN", "/usr/bin/mysql"),
            mysqlcheck=os.getenv("MYSQLCHECK_BIN", "mysqlcheck"),
            python=os.getenv("SANDBOX_PYTHON", sys.executable or "python3"),
        )


@dataclass(frozen=True)
class LifecycleConfig:
    """Server start/stop timing.

    Attributes:
        poll_interval: Seconds between socket reachability checks
        poll_attempts: Reachability checks before giving up waiting
        settle_seconds: Wait after a direct start before optimizing
        drain_seconds: Wait for a terminated server before killing it
    """

    poll_interval: float = 0.5
    poll_attempts: int = 20
    settle_seconds: float = 2.0
    drain_seconds: float = 3.0

    @classmethod
    def from_env(cls) -> LifecycleConfig:
        """Load configuration from environment variables."""
        return cls(
            poll_interval=float(os.getenv("SANDBOX_POLL_INTERVAL", "0.5")),
            poll_attempts=int(os.getenv("SANDBOX_POLL_ATTEMPTS", "20")),
            settle_seconds=float(os.getenv("SANDBOX_SETTLE_SECONDS", "2.0")),
            drain_seconds=float(os.getenv("SANDBOX_DRAIN_SECONDS", "3.0")),
        )


@dataclass(frozen=True)
class ServerDefaults:
    """Fixed server settings written into new config files.

    Attributes:
        max_connections: max-connections directive
        innodb_file_per_table: innodb-file-per-table directive
        character_set: Default character-set-server
        collation: Default collation-server
    """

    max_connections: int = 10000
    innodb_file_per_table: bool = True
    character_set: str = DEFAULT_CHARACTER_SET
    collation: str = DEFAULT_COLLATION


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class SandboxConfig:
    """Complete sandbox configuration.

    Attributes:
        engine: Which engine backend to use
        tools: Engine binary locations
        lifecycle: Start/stop timings
        server: Fixed server settings
        observability: Logging configuration
    """

    engine: EngineBackend = EngineBackend.MYSQL
    tools: ToolPaths = field(default_factory=ToolPaths)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    server: ServerDefaults = field(default_factory=ServerDefaults)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> SandboxConfig:
        """Load complete configuration from environment variables.

        Returns:
            SandboxConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is missing or invalid.
        """
        engine_str = os.getenv("SANDBOX_ENGINE", "mysql").lower()
        try:
            engine = EngineBackend(engine_str)
        except ValueError:
            raise ValueError(f"Invalid SANDBOX_ENGINE '{engine_str}'. Must be one of: mysql, memory")

        config = cls(
            engine=engine,
            tools=ToolPaths.from_env(),
            lifecycle=LifecycleConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.lifecycle.poll_interval <= 0:
            raise ValueError("SANDBOX_POLL_INTERVAL must be positive")
        if self.lifecycle.poll_attempts < 1:
            raise ValueError("SANDBOX_POLL_ATTEMPTS must be at least 1")
        if self.lifecycle.settle_seconds < 0:
            raise ValueError("SANDBOX_SETTLE_SECONDS must not be negative")
        if self.lifecycle.drain_seconds < 0:
            raise ValueError("SANDBOX_DRAIN_SECONDS must not be negative")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be one of: json, text")

    def log_config(self) -> None:
        """Log configuration."""
        logger.debug(
            "Sandbox configuration loaded",
            extra={
                "engine": self.engine.value,
                "mysqld": self.tools.mysqld,
                "mysql": self.tools.mysql,
                "mysqlcheck": self.tools.mysqlcheck,
                "poll_interval": self.lifecycle.poll_interval,
                "poll_attempts": self.lifecycle.poll_attempts,
                "log_level": self.observability.log_level,
            },
        )
