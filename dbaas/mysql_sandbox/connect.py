"""
Connect-wrapper lifecycle: start the server on demand, stop it after use.

Every generated mysql.sh execs this module. One invocation walks through:

    NO_SERVER --(socket missing)--> STARTING --> READY --> STOPPING --> NO_SERVER
    NO_SERVER --(socket present)----------------> READY

Only the invocation that started a server stops it; an invocation that finds
a server already listening borrows it and leaves it running.

Usage:
    python -m dbaas.mysql_sandbox.connect --defaults-file=<cnf> [--socket=<sock>] -- [mysql args ...]

Invariants:
    - Reachability means "the socket file exists"
    - The check-then-start sequence runs under an exclusive lock on
      conf/mysql.lock, so concurrent invocations start at most one server
    - An unreachable server after the poll ceiling is logged, not fatal;
      the client runs anyway and fails on its own if the server is down
    - The client's exit status is the invocation's exit status
    - A server this invocation started is stopped even when the invocation
      is interrupted before the client runs
    - While the client runs, SIGINT is left to the client
"""

from __future__ import annotations

import argparse
import asyncio
import fcntl
import logging
import sys
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, List, Optional, Sequence

from .config import LifecycleConfig
from .engine.base import ServerEngine, ServerProcess, create_engine, defer_interrupts, stop_server
from .errors import SandboxError
from .layout import SandboxLayout

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Server lifecycle state as seen by one wrapper invocation."""

    NO_SERVER = "no_server"
    STARTING = "starting"
    READY = "ready"
    STOPPING = "stopping"


@asynccontextmanager
async def start_lock(path: Path) -> AsyncIterator[None]:
    """Hold an exclusive advisory lock on path.

    The lock is taken in a worker thread so a waiting invocation does not
    block the event loop.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a") as handle:
        await asyncio.to_thread(fcntl.flock, handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class ConnectSession:
    """One connect-wrapper invocation.

    Attributes:
        engine: Engine used to start the server and run the client
        layout: Sandbox paths
        lifecycle: Poll and drain timings
        state: Current lifecycle state
        server: Server started by this invocation, if any

    Example:
        >>> session = ConnectSession(engine, layout)
        >>> status = await session.run(["--database=mydb"])
    """

    def __init__(
        self,
        engine: ServerEngine,
        layout: SandboxLayout,
        lifecycle: LifecycleConfig | None = None,
    ) -> None:
        self.engine = engine
        self.layout = layout
        self.lifecycle = lifecycle or LifecycleConfig()
        self.state = SessionState.NO_SERVER
        self.server: Optional[ServerProcess] = None

    @property
    def owns_server(self) -> bool:
        """Whether this invocation started the server it talks to."""
        return self.server is not None

    async def acquire(self) -> bool:
        """Make sure a server is reachable, starting one if needed.

        Returns:
            True if the socket appeared within the poll ceiling
        """
        async with start_lock(self.layout.lock_path):
            if not self.layout.is_reachable():
                self.state = SessionState.STARTING
                logger.info("Starting mysqld...")
                self.server = await self.engine.start_server(self.layout)
                logger.info(f"Server process: {self.server.pid}")

            logger.info("Waiting for connection to become available...")
            reachable = await self.wait_until_reachable()

        self.state = SessionState.READY
        return reachable

    async def wait_until_reachable(self) -> bool:
        """Poll for the socket file at a fixed interval.

        Returns:
            True once the socket exists, False after poll_attempts misses
        """
        attempts = 0
        while not self.layout.is_reachable():
            attempts += 1
            if attempts > self.lifecycle.poll_attempts:
                logger.warning(
                    "Connection to MySQL server cannot be established. Not trying anymore.",
                    extra={"socket": str(self.layout.socket_path), "attempts": attempts - 1},
                )
                return False
            if self.server is not None and self.server.returncode is not None:
                logger.warning(
                    f"Server process {self.server.pid} exited with status "
                    f"{self.server.returncode}; see {self.layout.log_path}"
                )
                return False
            await asyncio.sleep(self.lifecycle.poll_interval)
        return True

    async def release(self) -> None:
        """Stop the server if this invocation started it."""
        if self.server is not None:
            self.state = SessionState.STOPPING
            await stop_server(self.server, self.lifecycle.drain_seconds)
            self.server = None
        self.state = SessionState.NO_SERVER

    async def run(self, args: Sequence[str], input: Optional[bytes] = None) -> int:
        """Run the client with a server guaranteed (best effort) to be up.

        Args:
            args: Client arguments, forwarded verbatim
            input: Bytes to feed on stdin; None inherits stdin

        Returns:
            Client exit status
        """
        try:
            await self.acquire()
            with defer_interrupts():
                return await self.engine.run_client(self.layout, args, input=input)
        finally:
            await self.release()


def split_argv(argv: Sequence[str]) -> tuple[List[str], List[str]]:
    """Split wrapper arguments at the first '--' into (own, client) args."""
    argv = list(argv)
    if "--" in argv:
        index = argv.index("--")
        return argv[:index], argv[index + 1 :]
    return argv, []


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for generated connect-wrappers."""
    own_args, client_args = split_argv(sys.argv[1:] if argv is None else argv)

    parser = argparse.ArgumentParser(
        prog="mysql-sandbox-connect",
        description="Run the MySQL client against a sandbox, starting its server if needed",
    )
    parser.add_argument("--defaults-file", required=True, help="Sandbox mysql.cnf")
    parser.add_argument("--socket", help="Server socket (default: derived from --defaults-file)")
    args = parser.parse_args(own_args)

    from .main import load_config

    config = load_config()

    layout = SandboxLayout.from_config_file(args.defaults_file, args.socket)
    session = ConnectSession(create_engine(config), layout, config.lifecycle)
    try:
        status = asyncio.run(session.run(client_args))
    except SandboxError as e:
        logger.error(f"Error: {e.message}")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)
    sys.exit(status)


if __name__ == "__main__":
    main()
