"""
MySQL engine backend.

Drives the stock MySQL command-line tools through asyncio subprocesses:
- mysqld --initialize-insecure for first-time data directory setup
- mysqld --defaults-file=<cnf> for the (transient) server
- mysql for client sessions
- mysqlcheck --optimize for table maintenance

Invariants:
    - The server is always bound to the sandbox config file
    - Started servers run in their own session, detached from the terminal
    - Server output goes to conf/mysql.log, never to the caller's stdio
    - Clients connect as root over the Unix socket, without a password
"""

from __future__ import annotations

import asyncio
import logging
from asyncio.subprocess import Process
from typing import List, Optional, Sequence

from ..config import ToolPaths
from ..errors import EngineError, InitializationError
from ..layout import SandboxLayout
from .base import defer_interrupts

logger = logging.getLogger(__name__)


class MySQLEngine:
    """ServerEngine backed by the MySQL command-line tools.

    Attributes:
        tools: Binary locations

    Example:
        >>> engine = MySQLEngine(ToolPaths.from_env())
        >>> await engine.initialize(layout)
    """

    def __init__(self, tools: ToolPaths | None = None) -> None:
        self.tools = tools or ToolPaths()

    async def _spawn(self, command: List[str], **kwargs) -> Process:
        """Start a subprocess, translating launch failures."""
        logger.debug("Running command", extra={"command": command})
        try:
            return await asyncio.create_subprocess_exec(*command, **kwargs)
        except (FileNotFoundError, PermissionError) as e:
            raise EngineError(f"Cannot execute {command[0]}: {e}", binary=command[0]) from e

    async def _run(self, command: List[str], input: Optional[bytes] = None) -> int:
        """Run a command to completion with inherited stdout/stderr."""
        if input is None:
            process = await self._spawn(command)
            return await process.wait()

        process = await self._spawn(command, stdin=asyncio.subprocess.PIPE)
        await process.communicate(input)
        return process.returncode

    def client_command(self, layout: SandboxLayout, args: Sequence[str]) -> List[str]:
        """Build the mysql client command line for a sandbox."""
        # --defaults-file is only honored as the very first option
        return [
            self.tools.mysql,
            f"--defaults-file={layout.config_file}",
            "--user=root",
            f"--socket={layout.socket_path}",
            *args,
        ]

    def optimize_command(self, layout: SandboxLayout, schema: Optional[str] = None) -> List[str]:
        """Build the mysqlcheck command line for a sandbox."""
        return [
            self.tools.mysqlcheck,
            "--user=root",
            f"--socket={layout.socket_path}",
            "--optimize",
            schema or "--all-databases",
        ]

    async def initialize(self, layout: SandboxLayout) -> None:
        """Run mysqld --initialize-insecure against the sandbox config."""
        command = [
            self.tools.mysqld,
            f"--defaults-file={layout.config_file}",
            f"--datadir={layout.data_dir}",
            "--explicit-defaults-for-timestamp",
            "--initialize-insecure",
        ]

        with open(layout.init_log_path, "wb") as log:
            process = await self._spawn(
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=log,
                stderr=asyncio.subprocess.STDOUT,
            )
            returncode = await process.wait()

        if returncode != 0:
            raise InitializationError(str(layout.data_dir), returncode, str(layout.init_log_path))

    async def start_server(self, layout: SandboxLayout) -> Process:
        """Start mysqld detached, appending its output to the server log."""
        command = [self.tools.mysqld, f"--defaults-file={layout.config_file}"]

        with open(layout.log_path, "ab") as log:
            log.write(b"Starting mysqld...\n")
            log.flush()
            return await self._spawn(
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=log,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )

    async def run_client(
        self,
        layout: SandboxLayout,
        args: Sequence[str],
        input: Optional[bytes] = None,
    ) -> int:
        return await self._run(self.client_command(layout, args), input=input)

    async def run_wrapper(
        self,
        layout: SandboxLayout,
        args: Sequence[str],
        input: Optional[bytes] = None,
    ) -> int:
        with defer_interrupts():
            return await self._run([str(layout.wrapper_path), *args], input=input)

    async def optimize(self, layout: SandboxLayout, schema: Optional[str] = None) -> int:
        return await self._run(self.optimize_command(layout, schema))
