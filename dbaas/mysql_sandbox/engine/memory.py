"""
In-memory engine implementation for testing.

This module provides a fake engine that never spawns a real server:
- Servers are simulated by creating/removing the sandbox socket file
- Initialization creates the data/mysql marker
- Schema SQL fed to the client creates/removes data/<schema> markers
- Every call is recorded for assertions

Invariants:
    - Filesystem markers behave like the real engine's
    - A simulated server is reachable exactly while its socket file exists

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with ServerEngine protocol
    - Add knobs to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import re
import shutil
import signal
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..config import LifecycleConfig
from ..errors import InitializationError
from ..layout import SandboxLayout

logger = logging.getLogger(__name__)

_SCHEMA_SQL = re.compile(r"^(create|drop) schema if (?:not )?exists `((?:[^`]|``)+)`;$", re.IGNORECASE)
_pids = itertools.count(40000)


class InMemoryServerProcess:
    """Simulated server process.

    The socket file is created on start (when reachable) and removed when
    the process exits.

    Attributes:
        layout: Sandbox the server serves
        ignore_terminate: Keep running after SIGTERM (exercises the kill path)
    """

    def __init__(self, layout: SandboxLayout, reachable: bool = True, ignore_terminate: bool = False) -> None:
        self.layout = layout
        self.ignore_terminate = ignore_terminate
        self.signals: List[int] = []
        self._pid = next(_pids)
        self._returncode: Optional[int] = None
        self._exited = asyncio.Event()
        if reachable:
            layout.socket_path.parent.mkdir(parents=True, exist_ok=True)
            layout.socket_path.touch()

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def returncode(self) -> Optional[int]:
        return self._returncode

    def terminate(self) -> None:
        self.signals.append(signal.SIGTERM)
        if not self.ignore_terminate:
            self._exit(-signal.SIGTERM)

    def kill(self) -> None:
        self.signals.append(signal.SIGKILL)
        self._exit(-signal.SIGKILL)

    def crash(self, returncode: int = 1) -> None:
        """Exit on its own, as a server failing at startup would."""
        self._exit(returncode)

    async def wait(self) -> int:
        await self._exited.wait()
        return self._returncode

    def _exit(self, returncode: int) -> None:
        if self._returncode is not None:
            return
        self._returncode = returncode
        self.layout.socket_path.unlink(missing_ok=True)
        self._exited.set()


@dataclass
class ClientCall:
    """A recorded client invocation."""

    args: List[str]
    input: Optional[bytes]
    reachable: bool


@dataclass
class OptimizeCall:
    """A recorded optimize invocation."""

    schema: Optional[str]
    reachable: bool


class InMemoryEngine:
    """In-memory implementation of ServerEngine for testing.

    Attributes:
        lifecycle: Timings used by in-process connect-wrappers
        fail_initialize: Make initialize() fail like a confined mysqld
        reachable: Whether started servers ever create their socket
        ignore_terminate: Started servers survive SIGTERM
        client_status: Exit status returned by client runs
        optimize_status: Exit status returned by optimize runs
        client_seconds: How long each client run takes

    Example:
        >>> engine = InMemoryEngine(LifecycleConfig(poll_interval=0.01))
        >>> await engine.initialize(layout)
        >>> assert layout.system_schema_dir.is_dir()
    """

    def __init__(
        self,
        lifecycle: LifecycleConfig | None = None,
        fail_initialize: bool = False,
        reachable: bool = True,
        ignore_terminate: bool = False,
        client_status: int = 0,
        optimize_status: int = 0,
        client_seconds: float = 0,
    ) -> None:
        self.lifecycle = lifecycle or LifecycleConfig()
        self.fail_initialize = fail_initialize
        self.reachable = reachable
        self.ignore_terminate = ignore_terminate
        self.client_status = client_status
        self.optimize_status = optimize_status
        self.client_seconds = client_seconds

        self.initialize_count = 0
        self.servers: List[InMemoryServerProcess] = []
        self.client_calls: List[ClientCall] = []
        self.wrapper_calls: List[List[str]] = []
        self.optimize_calls: List[OptimizeCall] = []
        self.statements: List[str] = []

    async def initialize(self, layout: SandboxLayout) -> None:
        self.initialize_count += 1
        if self.fail_initialize:
            layout.init_log_path.write_text("mysqld: Can't create directory (Errcode: 13 - Permission denied)\n")
            raise InitializationError(str(layout.data_dir), 1, str(layout.init_log_path))

        layout.system_schema_dir.mkdir(parents=True, exist_ok=True)
        layout.init_log_path.write_text("[Note] Data directory initialized (in-memory engine)\n")
        logger.debug("InMemoryEngine initialized data directory", extra={"data_dir": str(layout.data_dir)})

    async def start_server(self, layout: SandboxLayout) -> InMemoryServerProcess:
        server = InMemoryServerProcess(layout, reachable=self.reachable, ignore_terminate=self.ignore_terminate)
        self.servers.append(server)
        return server

    async def run_client(
        self,
        layout: SandboxLayout,
        args: Sequence[str],
        input: Optional[bytes] = None,
    ) -> int:
        reachable = layout.is_reachable()
        self.client_calls.append(ClientCall(args=list(args), input=input, reachable=reachable))
        if input is not None and reachable:
            self._execute(layout, input.decode("utf-8"))
        if self.client_seconds:
            await asyncio.sleep(self.client_seconds)
        return self.client_status

    async def run_wrapper(
        self,
        layout: SandboxLayout,
        args: Sequence[str],
        input: Optional[bytes] = None,
    ) -> int:
        from ..connect import ConnectSession

        self.wrapper_calls.append(list(args))
        session = ConnectSession(self, layout, self.lifecycle)
        return await session.run(args, input=input)

    async def optimize(self, layout: SandboxLayout, schema: Optional[str] = None) -> int:
        self.optimize_calls.append(OptimizeCall(schema=schema, reachable=layout.is_reachable()))
        return self.optimize_status

    @property
    def running_servers(self) -> List[InMemoryServerProcess]:
        return [s for s in self.servers if s.returncode is None]

    def _execute(self, layout: SandboxLayout, sql: str) -> None:
        """Apply schema statements to the data directory markers."""
        for line in sql.splitlines():
            line = line.strip()
            if not line:
                continue
            self.statements.append(line)
            match = _SCHEMA_SQL.match(line)
            if not match:
                continue
            verb, name = match.group(1).lower(), match.group(2).replace("``", "`")
            if verb == "create":
                layout.schema_dir(name).mkdir(parents=True, exist_ok=True)
            else:
                shutil.rmtree(layout.schema_dir(name), ignore_errors=True)
