"""
Sandbox provisioner.

Provisions a standalone, non-privileged MySQL instance under a base directory:
1. Create data/ and conf/
2. Write conf/mysql.cnf (once)
3. Initialize the data directory (once)
4. Write the mysql.sh connect-wrapper (once)
5. Optionally (re)create a schema through the wrapper
6. Optionally connect interactively through the wrapper
7. Optionally optimize tables on a directly started server

Invariants:
    - Provisioning is idempotent: rerunning it never reinitializes data,
      rewrites the config file or regenerates the wrapper
    - Each step assumes the previous ones succeeded; a failure aborts the run
      and a rerun resumes from the on-disk markers
    - Schema and connect steps always go through the wrapper

How to change safely:
    - Gate every new one-shot step on an on-disk marker in state.py
    - Test new steps against InMemoryEngine before a real server
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .cnf import ignored_options, read_settings, render_config, schema_statements
from .config import SandboxConfig
from .engine.base import ServerEngine, stop_server
from .errors import CommandError
from .layout import SandboxLayout
from .options import ProvisionOptions
from .state import Action, MarkerState, plan
from .wrapper import render_wrapper, write_wrapper

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Outcome of a provisioning run.

    Attributes:
        layout: Sandbox paths
        initial: Markers found before the run
        final: Markers left after the run
        actions: Actions performed, in order
    """

    layout: SandboxLayout
    initial: MarkerState
    final: MarkerState
    actions: List[Action] = field(default_factory=list)


class Provisioner:
    """Runs the provisioning sequence for one base directory.

    Attributes:
        options: Provisioning options
        engine: Engine used for initialization, client runs and optimize
        config: Sandbox configuration
        layout: Sandbox paths

    Example:
        >>> provisioner = Provisioner(ProvisionOptions(base_dir=Path("/tmp/x"), schema="mydb"), engine)
        >>> result = await provisioner.run()
        >>> print(result.actions)
    """

    def __init__(
        self,
        options: ProvisionOptions,
        engine: ServerEngine,
        config: SandboxConfig | None = None,
        argv: Optional[Sequence[str]] = None,
        cwd: Optional[str] = None,
    ) -> None:
        """Initialize the provisioner.

        Args:
            options: Provisioning options
            engine: Engine backend
            config: Sandbox configuration (defaults if not provided)
            argv: Command line recorded in the wrapper (defaults to sys.argv)
            cwd: Working directory recorded in the wrapper
        """
        self.options = options
        self.engine = engine
        self.config = config or SandboxConfig()
        self.layout = SandboxLayout.for_base_dir(options.base_dir)
        self._argv = list(sys.argv if argv is None else argv)
        self._cwd = cwd or os.getcwd()

        self._handlers: Dict[Action, Callable] = {
            Action.CREATE_DIRS: self.create_dirs,
            Action.WRITE_CONFIG: self.write_config,
            Action.INITIALIZE_DATA: self.initialize_data,
            Action.WRITE_WRAPPER: self.write_wrapper,
            Action.CONNECT: self.connect,
            Action.OPTIMIZE: self.optimize,
        }

    async def run(self) -> ProvisionResult:
        """Execute the provisioning sequence.

        Returns:
            ProvisionResult with the performed actions

        Raises:
            UsageError: If options are inconsistent
            InitializationError: If the data directory cannot be initialized
            CommandError: If a schema, connect or optimize command fails
        """
        self.options.validate()

        initial = MarkerState.scan(self.layout, self.options.schema)
        actions = plan(initial, self.options)
        logger.debug(
            "Provisioning plan",
            extra={"base_dir": str(self.layout.base_dir), "actions": [a.value for a in actions]},
        )

        if initial.config_exists:
            self._warn_ignored_options()

        for action in actions:
            if action is Action.DROP_SCHEMA:
                # Sent together with CREATE_SCHEMA in a single client session
                continue
            if action is Action.CREATE_SCHEMA:
                await self.create_schema(drop_first=Action.DROP_SCHEMA in actions)
            else:
                await self._handlers[action]()

        return ProvisionResult(
            layout=self.layout,
            initial=initial,
            final=MarkerState.scan(self.layout, self.options.schema),
            actions=actions,
        )

    async def create_dirs(self) -> None:
        self.layout.data_dir.mkdir(parents=True, exist_ok=True)
        self.layout.conf_dir.mkdir(parents=True, exist_ok=True)

    async def write_config(self) -> None:
        logger.info("Creating configuration file...", extra={"path": str(self.layout.config_file)})
        self.layout.config_file.write_text(render_config(self.layout, self.options, self.config.server))

    async def initialize_data(self) -> None:
        logger.info("Creating barebones database...", extra={"data_dir": str(self.layout.data_dir)})
        await self.engine.initialize(self.layout)

    async def write_wrapper(self) -> None:
        logger.info("Creating connection script...", extra={"path": str(self.layout.wrapper_path)})
        content = render_wrapper(
            self.layout,
            python=self.config.tools.python,
            argv=self._argv,
            cwd=self._cwd,
        )
        write_wrapper(self.layout.wrapper_path, content)

    async def create_schema(self, drop_first: bool = False) -> None:
        """Pipe (drop and) create schema statements through the wrapper."""
        schema = self.options.schema
        logger.info("Creating database...", extra={"schema": schema, "drop_first": drop_first})

        sql = schema_statements(schema, drop_first=drop_first)
        status = await self.engine.run_wrapper(self.layout, [], input=sql.encode("utf-8"))
        if status != 0:
            raise CommandError([str(self.layout.wrapper_path)], status)

    async def connect(self) -> None:
        """Open an interactive client session through the wrapper."""
        args = []
        if self.options.schema:
            logger.info(f"Connecting to database {self.options.schema} and redirecting stdin...")
            args.append(f"--database={self.options.schema}")
        else:
            logger.info("Connecting to database and redirecting stdin...")

        status = await self.engine.run_wrapper(self.layout, args)
        if status != 0:
            raise CommandError([str(self.layout.wrapper_path), *args], status)

    async def optimize(self) -> None:
        """Optimize tables on a server started for this purpose only."""
        lifecycle = self.config.lifecycle
        target = self.options.schema or "--all-databases"

        server = await self.engine.start_server(self.layout)
        logger.info(f"Server process: {server.pid}")
        try:
            await asyncio.sleep(lifecycle.settle_seconds)
            logger.info("Optimizing tables...", extra={"target": target})
            status = await self.engine.optimize(self.layout, self.options.schema)
        finally:
            await stop_server(server, lifecycle.drain_seconds)

        if status != 0:
            raise CommandError(["mysqlcheck", "--optimize", target], status)

    def _warn_ignored_options(self) -> None:
        """Warn when the existing config file differs from the requested options."""
        settings = read_settings(self.layout.config_file)
        if settings is None:
            return
        ignored = ignored_options(settings, self.options)
        if ignored:
            logger.warning(
                f"Configuration file {self.layout.config_file} already exists and is left "
                f"unchanged; not applying: {', '.join(ignored)}"
            )
