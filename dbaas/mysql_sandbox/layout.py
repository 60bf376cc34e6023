"""
Filesystem layout of a provisioned sandbox.

A sandbox lives entirely under one base directory:

    <base>/data/                   engine-owned state
    <base>/conf/mysql.cnf          server config
    <base>/conf/mysql.sock         runtime socket
    <base>/conf/mysql.log          server output
    <base>/conf/mysql.lock         start lock for connect-wrappers
    <base>/mysql.sh                generated connect-wrapper
    <base>/mysqld_initialize.log   first-run initialization output

The socket, log and lock paths are derived from the config path by swapping
its extension, so a connect-wrapper needs nothing but the config path.
"""

from __future__ import annotations

import configparser
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

DATA_DIR_NAME = "data"
CONF_DIR_NAME = "conf"
CONFIG_FILE_NAME = "mysql.cnf"
WRAPPER_NAME = "mysql.sh"
INIT_LOG_NAME = "mysqld_initialize.log"

# Subdirectory that mysqld --initialize creates for the system schema
SYSTEM_SCHEMA_DIR = "mysql"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SandboxLayout:
    """Paths of one sandbox instance.

    Attributes:
        base_dir: Absolute, symlink-free base directory
        data_dir: Engine data directory
        conf_dir: Directory holding config, socket, log and lock
        config_file: Server config file
        socket_path: Unix socket the server listens on
    """

    base_dir: Path
    data_dir: Path
    conf_dir: Path
    config_file: Path
    socket_path: Path

    @classmethod
    def for_base_dir(cls, base_dir: str | Path) -> SandboxLayout:
        """Build the layout rooted at base_dir (resolved to its canonical form)."""
        base = Path(base_dir).expanduser().resolve()
        conf_dir = base / CONF_DIR_NAME
        config_file = conf_dir / CONFIG_FILE_NAME
        return cls(
            base_dir=base,
            data_dir=base / DATA_DIR_NAME,
            conf_dir=conf_dir,
            config_file=config_file,
            socket_path=config_file.with_suffix(".sock"),
        )

    @classmethod
    def from_config_file(
        cls,
        config_file: str | Path,
        socket_path: str | Path | None = None,
    ) -> SandboxLayout:
        """Rebuild the layout from an existing config file.

        Used by connect-wrappers, which only know the config and socket
        paths. The data directory is read from the ``datadir`` setting when
        present, otherwise assumed to sit next to the conf directory.

        Args:
            config_file: Path to mysql.cnf
            socket_path: Explicit socket path (derived from config_file if omitted)
        """
        config_file = Path(config_file).expanduser().resolve()
        conf_dir = config_file.parent
        base = conf_dir.parent
        data_dir = read_data_dir(config_file) or base / DATA_DIR_NAME
        return cls(
            base_dir=base,
            data_dir=data_dir,
            conf_dir=conf_dir,
            config_file=config_file,
            socket_path=Path(socket_path) if socket_path else config_file.with_suffix(".sock"),
        )

    @property
    def log_path(self) -> Path:
        return self.config_file.with_suffix(".log")

    @property
    def lock_path(self) -> Path:
        return self.config_file.with_suffix(".lock")

    @property
    def wrapper_path(self) -> Path:
        return self.base_dir / WRAPPER_NAME

    @property
    def init_log_path(self) -> Path:
        return self.base_dir / INIT_LOG_NAME

    @property
    def system_schema_dir(self) -> Path:
        return self.data_dir / SYSTEM_SCHEMA_DIR

    def schema_dir(self, schema: str) -> Path:
        """On-disk directory the engine creates for a schema."""
        return self.data_dir / schema

    def is_reachable(self) -> bool:
        """Whether a server appears to be listening (the socket file exists)."""
        return self.socket_path.exists()


def read_mysqld_section(config_file: Path) -> Dict[str, Optional[str]] | None:
    """Read the [mysqld] section of an option file.

    Returns:
        The section's settings ({} when the file or section is missing),
        or None when the file cannot be parsed as INI (hand-edited files may
        carry !include directives or settings above the first section)
    """
    if not config_file.exists():
        return {}

    parser = configparser.ConfigParser(allow_no_value=True, strict=False, interpolation=None)
    try:
        parser.read(config_file)
    except configparser.Error as e:
        logger.warning(f"Cannot parse {config_file}, ignoring its settings: {e}")
        return None
    if not parser.has_section("mysqld"):
        return {}
    return dict(parser.items("mysqld"))


def read_data_dir(config_file: Path) -> Path | None:
    """Read the datadir setting of the [mysqld] section, if any."""
    value = (read_mysqld_section(config_file) or {}).get("datadir")
    return Path(value) if value else None
