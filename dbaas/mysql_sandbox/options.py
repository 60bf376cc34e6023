"""
Provisioning options and their settings summary.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import DEFAULT_CHARACTER_SET, DEFAULT_COLLATION
from .errors import UsageError

NO_NETWORK = "none"


@dataclass(frozen=True)
class ProvisionOptions:
    """What to provision under a base directory.

    Attributes:
        base_dir: Sandbox base directory
        schema: Schema to create (and connect to / optimize)
        port: TCP port to listen on; None disables networking entirely
        drop_first: Drop the schema before creating it
        connect: Connect interactively after provisioning
        optimize: Optimize tables after provisioning
        character_set: character-set-server for a new config file
        collation: collation-server for a new config file
    """

    base_dir: Path
    schema: str | None = None
    port: int | None = None
    drop_first: bool = False
    connect: bool = False
    optimize: bool = False
    character_set: str = DEFAULT_CHARACTER_SET
    collation: str = DEFAULT_COLLATION

    def validate(self) -> None:
        """Check option consistency.

        Raises:
            UsageError: If options are inconsistent.
        """
        if self.drop_first and not self.schema:
            raise UsageError("--drop-first is only valid with --database", option="drop_first")
        if self.schema is not None and not self.schema.strip():
            raise UsageError("Database name must not be empty", option="schema")
        if self.port is not None and not 0 < self.port < 65536:
            raise UsageError(f"Invalid port {self.port}", option="port")


def parse_port(value: str) -> int | None:
    """Parse a --port value; 'none' selects socket-only operation."""
    if value.strip().lower() == NO_NETWORK:
        return None
    try:
        port = int(value)
    except ValueError:
        raise UsageError(f"Invalid port '{value}'. Must be 'none' or a number", option="port")
    if not 0 < port < 65536:
        raise UsageError(f"Invalid port {port}", option="port")
    return port


def format_settings(options: ProvisionOptions) -> str:
    """Render the settings table shown before provisioning starts."""
    settings = [
        ("Database", options.schema or ""),
        ("Port", NO_NETWORK if options.port is None else str(options.port)),
        ("Character set", options.character_set),
        ("Collation", options.collation),
    ]
    flags = [
        ("Drop first", options.drop_first),
        ("Connect", options.connect),
        ("Optimize", options.optimize),
    ]

    lines = [f"    {label:>15}: {value}" for label, value in settings]
    lines += [f"    {label:>15}? {'Yes' if value else 'No'}" for label, value in flags]
    return "\n".join(lines)
