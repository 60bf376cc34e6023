"""
Base protocol and types for the database engine abstraction.

The sandbox never talks to a server directly: every interaction goes through
the engine's own command-line tools (initialize, start server, client,
optimize). This module defines the ServerEngine protocol all backends
implement, the ServerProcess handle for a started server, and stop_server(),
the shared shutdown routine.

Invariants:
    - A ServerProcess is only ever stopped by the code that started it
    - stop_server() always returns with the process gone (terminated or killed)
    - Client exit statuses are returned, never raised, so callers decide

How to change safely:
    - Protocol changes require updating all implementations
    - Keep InMemoryEngine behavior aligned with MySQLEngine for tests
"""

from __future__ import annotations

import asyncio
import logging
import signal
from abc import abstractmethod
from contextlib import contextmanager
from typing import (
    Iterator,
    Optional,
    Protocol,
    Sequence,
    TYPE_CHECKING,
    runtime_checkable,
)

from ..layout import SandboxLayout

if TYPE_CHECKING:
    from ..config import SandboxConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class ServerProcess(Protocol):
    """Handle for a server process this code started."""

    @property
    @abstractmethod
    def pid(self) -> int:
        """OS process id."""
        ...

    @property
    @abstractmethod
    def returncode(self) -> Optional[int]:
        """Exit status, or None while running."""
        ...

    @abstractmethod
    def terminate(self) -> None:
        """Send SIGTERM."""
        ...

    @abstractmethod
    def kill(self) -> None:
        """Send SIGKILL."""
        ...

    @abstractmethod
    async def wait(self) -> int:
        """Wait for the process to exit and return its status."""
        ...


@runtime_checkable
class ServerEngine(Protocol):
    """Protocol for database engine backends.

    Example:
        >>> engine = MySQLEngine(tools)
        >>> await engine.initialize(layout)
        >>> server = await engine.start_server(layout)
        >>> status = await engine.run_client(layout, ["-e", "select 1"])
        >>> await stop_server(server, drain_seconds=3.0)
    """

    @abstractmethod
    async def initialize(self, layout: SandboxLayout) -> None:
        """Initialize an empty data directory with a password-less root.

        Output is written to layout.init_log_path.

        Raises:
            InitializationError: If the engine refuses to initialize
            EngineError: If the server binary cannot be executed
        """
        ...

    @abstractmethod
    async def start_server(self, layout: SandboxLayout) -> ServerProcess:
        """Start a detached server bound to the sandbox config file.

        Server output is appended to layout.log_path. Returns as soon as the
        process is spawned; readiness is signaled by the socket file.

        Raises:
            EngineError: If the server binary cannot be executed
        """
        ...

    @abstractmethod
    async def run_client(
        self,
        layout: SandboxLayout,
        args: Sequence[str],
        input: Optional[bytes] = None,
    ) -> int:
        """Run the client as root over the sandbox socket.

        Args:
            layout: Sandbox paths
            args: Extra client arguments, forwarded verbatim
            input: Bytes to feed on stdin; None inherits stdin

        Returns:
            Client exit status
        """
        ...

    @abstractmethod
    async def run_wrapper(
        self,
        layout: SandboxLayout,
        args: Sequence[str],
        input: Optional[bytes] = None,
    ) -> int:
        """Run the generated connect-wrapper.

        Args:
            layout: Sandbox paths
            args: Arguments passed to the wrapper
            input: Bytes to feed on stdin; None inherits stdin

        Returns:
            Wrapper exit status
        """
        ...

    @abstractmethod
    async def optimize(self, layout: SandboxLayout, schema: Optional[str] = None) -> int:
        """Optimize the tables of one schema, or of all schemas.

        Returns:
            Exit status of the optimize command
        """
        ...


async def stop_server(process: ServerProcess, drain_seconds: float) -> int:
    """Terminate a server and wait for it to exit.

    Sends SIGTERM and waits up to drain_seconds; a server still running after
    that is killed.

    Args:
        process: Server handle
        drain_seconds: Grace period after SIGTERM

    Returns:
        Exit status of the server
    """
    if process.returncode is not None:
        return process.returncode

    logger.info("Stopping server...", extra={"pid": process.pid})
    try:
        process.terminate()
    except ProcessLookupError:
        return await process.wait()

    try:
        return await asyncio.wait_for(process.wait(), timeout=drain_seconds)
    except asyncio.TimeoutError:
        logger.warning(
            f"Server {process.pid} did not exit within {drain_seconds}s, killing it",
            extra={"pid": process.pid},
        )
        try:
            process.kill()
        except ProcessLookupError:
            pass
        return await process.wait()


@contextmanager
def defer_interrupts() -> Iterator[None]:
    """Keep SIGINT from interrupting this process while a foreground child runs.

    A terminal Ctrl-C reaches the whole process group. The child (the mysql
    client) handles it by aborting its current statement; this process keeps
    waiting for the child instead of being cancelled. The handler is reset
    to the default in exec'd children.

    Must be entered from the thread running the event loop.
    """
    loop = asyncio.get_running_loop()
    previous = signal.getsignal(signal.SIGINT)
    loop.add_signal_handler(signal.SIGINT, logger.debug, "Interrupt left to the client")
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


def create_engine(config: "SandboxConfig") -> ServerEngine:
    """Factory function to create an engine from configuration.

    Args:
        config: Sandbox configuration

    Returns:
        Appropriate ServerEngine implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import EngineBackend
    from .memory import InMemoryEngine
    from .mysql import MySQLEngine

    if config.engine == EngineBackend.MYSQL:
        return MySQLEngine(config.tools)
    elif config.engine == EngineBackend.MEMORY:
        return InMemoryEngine(config.lifecycle)
    else:
        raise ValueError(f"Unsupported engine backend: {config.engine}")
