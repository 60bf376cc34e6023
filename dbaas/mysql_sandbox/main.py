"""
MySQL sandbox - Main entry point.

Initializes a local (non-sudo) MySQL database data directory, creates a
connection script and optionally connects to the database. Two directories,
'data' and 'conf', are created under the given base directory, holding the
database's data and configuration files respectively.

Usage:
    mysql-sandbox [--database=<database-name>] <base-dir>
    e.g. zcat mydb_backup.sql.gz | mysql-sandbox --database=mydb --connect .

Binary locations, timings and logging are configured via environment
variables. See config.py for all available settings.

Invariants:
    - Usage errors exit with status 2 before anything is written
    - Initialization failures exit with status 1 and a remediation hint
    - Failed client/optimize commands exit with the command's status
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import json_log_formatter

from .config import DEFAULT_CHARACTER_SET, DEFAULT_COLLATION, SandboxConfig
from .engine import create_engine
from .errors import CommandError, SandboxError, UsageError
from .options import ProvisionOptions, format_settings, parse_port
from .provisioner import ProvisionResult, Provisioner

logger = logging.getLogger(__name__)


def setup_logging(config: SandboxConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: Sandbox configuration
        verbose: Force DEBUG level
    """
    level = logging.DEBUG if verbose else getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def load_config(verbose: bool = False) -> SandboxConfig:
    """Load configuration from the environment and set up logging.

    An invalid environment is reported through default logging and exits
    with status 1.
    """
    try:
        config = SandboxConfig.from_env()
    except ValueError as e:
        setup_logging(SandboxConfig(), verbose=verbose)
        logger.error(f"Error: invalid configuration: {e}")
        sys.exit(1)

    setup_logging(config, verbose=verbose)
    return config


def _port(value: str) -> Optional[int]:
    try:
        return parse_port(value)
    except UsageError as e:
        raise argparse.ArgumentTypeError(e.message)


def build_parser() -> argparse.ArgumentParser:
    """Build the provisioning command-line parser."""
    parser = argparse.ArgumentParser(
        prog="mysql-sandbox",
        description=(
            "Initializes a local (non-sudo) MySQL database data directory, creates a "
            "connection script and connects to the database. Creates two directories, "
            "'data' and 'conf', under the given base directory."
        ),
    )
    parser.add_argument("base_dir", metavar="base-dir", help="Sandbox base directory")
    parser.add_argument("-D", "--database", metavar="NAME", help="Create the database NAME.")
    parser.add_argument(
        "-P",
        "--port",
        type=_port,
        default=None,
        metavar="PORT",
        help=(
            "Setup the server to use PORT for listening. (default: 'none'; that is, avoid "
            "using TCP-IP entirely, relying solely on Unix sockets instead)."
        ),
    )
    parser.add_argument(
        "-x",
        "--drop-first",
        action="store_true",
        help="Drop the given database before creating it (only valid with -D).",
    )
    parser.add_argument(
        "-c",
        "--connect",
        action="store_true",
        help="Connect to the given database. Useful for importing data right after creation.",
    )
    parser.add_argument(
        "-o",
        "--optimize",
        action="store_true",
        help=(
            "Optimize database(s) using mysqlcheck --optimize. If a database name is "
            "given, optimization is done only for that database."
        ),
    )
    parser.add_argument(
        "-r",
        "--character-set",
        default=DEFAULT_CHARACTER_SET,
        help=(
            f"Server character set (default: {DEFAULT_CHARACTER_SET}). Applied only when the "
            "config file is first written; an existing config file keeps its setting and a "
            "warning lists the options not applied."
        ),
    )
    parser.add_argument(
        "-l",
        "--collation",
        default=DEFAULT_COLLATION,
        help=(
            f"Server collation (default: {DEFAULT_COLLATION}). Applied only when the config "
            "file is first written, like --character-set."
        ),
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def parse_options(argv: Optional[Sequence[str]] = None) -> tuple[ProvisionOptions, bool]:
    """Parse the command line into provisioning options.

    Returns:
        Tuple of (options, verbose)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    options = ProvisionOptions(
        base_dir=Path(args.base_dir),
        schema=args.database,
        port=args.port,
        drop_first=args.drop_first,
        connect=args.connect,
        optimize=args.optimize,
        character_set=args.character_set,
        collation=args.collation,
    )
    try:
        options.validate()
    except UsageError as e:
        parser.error(e.message)

    return options, args.verbose


async def provision(options: ProvisionOptions, config: SandboxConfig) -> ProvisionResult:
    """Provision a sandbox with the configured engine."""
    config.log_config()
    provisioner = Provisioner(options, create_engine(config), config)
    return await provisioner.run()


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for provisioning."""
    options, verbose = parse_options(argv)

    config = load_config(verbose=verbose)

    print(format_settings(options))

    try:
        result = asyncio.run(provision(options, config))
    except CommandError as e:
        logger.error(f"Error: {e.message}")
        sys.exit(e.returncode if e.returncode > 0 else 1)
    except SandboxError as e:
        logger.error(f"Error: {e.message}")
        sys.exit(1)

    logger.info(
        f"Sandbox ready at {result.layout.base_dir}",
        extra={"actions": [a.value for a in result.actions]},
    )


if __name__ == "__main__":
    main()
