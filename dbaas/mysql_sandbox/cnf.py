"""
Server config file rendering.

The config file is written once, when a sandbox is first provisioned, and
never touched again so that manual edits survive reruns.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from .config import ServerDefaults
from .layout import SandboxLayout, read_mysqld_section
from .options import ProvisionOptions


def render_config(
    layout: SandboxLayout,
    options: ProvisionOptions,
    defaults: ServerDefaults | None = None,
) -> str:
    """Render the [mysqld] section for a new sandbox.

    Args:
        layout: Sandbox paths
        options: Provisioning options (port, character set, collation)
        defaults: Fixed server settings

    Returns:
        Config file contents
    """
    defaults = defaults or ServerDefaults()

    lines = [
        "[mysqld]",
        f"datadir={layout.data_dir}",
        f"socket={layout.socket_path}",
        f"max-connections={defaults.max_connections}",
        f"innodb-file-per-table={1 if defaults.innodb_file_per_table else 0}",
        f"character-set-server={options.character_set}",
        f"collation-server={options.collation}",
    ]

    if options.port is None:
        lines.append("skip-networking")
    else:
        lines.append(f"port={options.port}")

    return "\n".join(lines) + "\n"


def read_settings(config_file: Path) -> Dict[str, Optional[str]] | None:
    """Read the [mysqld] settings of an existing config file.

    Flags without a value (skip-networking) map to None. Returns None when
    the file cannot be parsed.
    """
    return read_mysqld_section(config_file)


def ignored_options(settings: Dict[str, Optional[str]], options: ProvisionOptions) -> List[str]:
    """List requested settings an existing config file does not carry."""
    ignored = []
    if settings.get("character-set-server") != options.character_set:
        ignored.append(f"character-set-server={options.character_set}")
    if settings.get("collation-server") != options.collation:
        ignored.append(f"collation-server={options.collation}")

    if options.port is None:
        if "skip-networking" not in settings:
            ignored.append("skip-networking")
    elif settings.get("port") != str(options.port):
        ignored.append(f"port={options.port}")
    return ignored


def quote_identifier(name: str) -> str:
    """Backtick-quote a schema name, doubling embedded backticks."""
    return "`" + name.replace("`", "``") + "`"


def schema_statements(schema: str, drop_first: bool = False) -> str:
    """SQL that (re)creates a schema, one statement per line."""
    quoted = quote_identifier(schema)
    statements = []
    if drop_first:
        statements.append(f"drop schema if exists {quoted};")
    statements.append(f"create schema if not exists {quoted};")
    return "\n".join(statements) + "\n"
