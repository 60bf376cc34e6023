"""
Unit tests for engine backends.

Tests cover:
- In-memory engine markers and recording
- stop_server terminate/kill behavior
- MySQL engine command lines and exit status handling
"""

import asyncio
import shutil
import signal
import sys
import tempfile

import pytest

from dbaas.mysql_sandbox.config import EngineBackend, SandboxConfig, ToolPaths
from dbaas.mysql_sandbox.engine import (
    InMemoryEngine,
    MySQLEngine,
    ServerEngine,
    ServerProcess,
    create_engine,
    stop_server,
)
from dbaas.mysql_sandbox.errors import EngineError, InitializationError
from dbaas.mysql_sandbox.layout import SandboxLayout

TRUE = shutil.which("true")
FALSE = shutil.which("false")
SLEEP = shutil.which("sleep")


@pytest.fixture
def layout():
    """Create a layout with data and conf directories."""
    with tempfile.TemporaryDirectory() as tmpdir:
        layout = SandboxLayout.for_base_dir(tmpdir)
        layout.data_dir.mkdir(parents=True)
        layout.conf_dir.mkdir(parents=True)
        yield layout


class TestInMemoryEngine:
    """Tests for InMemoryEngine."""

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryEngine(), ServerEngine)

    @pytest.mark.asyncio
    async def test_initialize_creates_marker(self, layout):
        engine = InMemoryEngine()

        await engine.initialize(layout)

        assert layout.system_schema_dir.is_dir()
        assert layout.init_log_path.exists()
        assert engine.initialize_count == 1

    @pytest.mark.asyncio
    async def test_initialize_failure(self, layout):
        """A confined mysqld is reported with the AppArmor hint."""
        engine = InMemoryEngine(fail_initialize=True)

        with pytest.raises(InitializationError, match="AppArmor") as exc:
            await engine.initialize(layout)

        assert exc.value.log_path == str(layout.init_log_path)
        assert not layout.system_schema_dir.exists()

    @pytest.mark.asyncio
    async def test_server_owns_socket(self, layout):
        """The socket exists exactly while the simulated server runs."""
        engine = InMemoryEngine()

        server = await engine.start_server(layout)
        assert isinstance(server, ServerProcess)
        assert layout.is_reachable()

        server.terminate()
        assert await server.wait() == -signal.SIGTERM
        assert not layout.is_reachable()

    @pytest.mark.asyncio
    async def test_schema_statements_create_markers(self, layout):
        engine = InMemoryEngine()
        layout.socket_path.touch()

        await engine.run_client(layout, [], input=b"create schema if not exists `my``db`;\n")
        assert layout.schema_dir("my`db").is_dir()

        await engine.run_client(layout, [], input=b"drop schema if exists `my``db`;\n")
        assert not layout.schema_dir("my`db").exists()

    @pytest.mark.asyncio
    async def test_unreachable_client_changes_nothing(self, layout):
        engine = InMemoryEngine()

        await engine.run_client(layout, [], input=b"create schema if not exists `mydb`;\n")

        assert not layout.schema_dir("mydb").exists()
        assert engine.client_calls[0].reachable is False


class TestStopServer:
    """Tests for stop_server."""

    @pytest.mark.asyncio
    async def test_already_exited(self, layout):
        server = await InMemoryEngine().start_server(layout)
        server.crash(3)

        assert await stop_server(server, drain_seconds=0.1) == 3
        assert server.signals == []

    @pytest.mark.asyncio
    async def test_terminate(self, layout):
        server = await InMemoryEngine().start_server(layout)

        assert await stop_server(server, drain_seconds=0.1) == -signal.SIGTERM
        assert server.signals == [signal.SIGTERM]

    @pytest.mark.asyncio
    async def test_kill_after_timeout(self, layout):
        server = await InMemoryEngine(ignore_terminate=True).start_server(layout)

        assert await stop_server(server, drain_seconds=0.01) == -signal.SIGKILL
        assert server.signals == [signal.SIGTERM, signal.SIGKILL]

    @pytest.mark.skipif(SLEEP is None, reason="sleep not available")
    @pytest.mark.asyncio
    async def test_real_process(self):
        """A real child process is terminated and reaped."""
        process = await asyncio.create_subprocess_exec(SLEEP, "30")

        returncode = await stop_server(process, drain_seconds=5.0)

        assert returncode == -signal.SIGTERM
        assert process.returncode == -signal.SIGTERM


class TestMySQLEngine:
    """Tests for MySQLEngine against stand-in binaries."""

    def test_client_command(self, layout):
        engine = MySQLEngine(ToolPaths(mysql="/usr/bin/mysql"))

        command = engine.client_command(layout, ["--database=mydb"])

        assert command == [
            "/usr/bin/mysql",
            f"--defaults-file={layout.config_file}",
            "--user=root",
            f"--socket={layout.socket_path}",
            "--database=mydb",
        ]

    def test_optimize_command(self, layout):
        engine = MySQLEngine(ToolPaths(mysqlcheck="mysqlcheck"))

        assert engine.optimize_command(layout, "mydb")[-2:] == ["--optimize", "mydb"]
        assert engine.optimize_command(layout)[-1] == "--all-databases"
        assert f"--socket={layout.socket_path}" in engine.optimize_command(layout)

    @pytest.mark.skipif(TRUE is None, reason="true not available")
    @pytest.mark.asyncio
    async def test_initialize_success(self, layout):
        engine = MySQLEngine(ToolPaths(mysqld=TRUE))

        await engine.initialize(layout)

        assert layout.init_log_path.exists()

    @pytest.mark.skipif(FALSE is None, reason="false not available")
    @pytest.mark.asyncio
    async def test_initialize_failure(self, layout):
        engine = MySQLEngine(ToolPaths(mysqld=FALSE))

        with pytest.raises(InitializationError) as exc:
            await engine.initialize(layout)

        assert exc.value.returncode == 1
        assert "AppArmor" in exc.value.message

    @pytest.mark.asyncio
    async def test_missing_binary(self, layout):
        engine = MySQLEngine(ToolPaths(mysql="/nonexistent/mysql"))

        with pytest.raises(EngineError) as exc:
            await engine.run_client(layout, [])

        assert exc.value.binary == "/nonexistent/mysql"

    @pytest.mark.skipif(FALSE is None or TRUE is None, reason="true/false not available")
    @pytest.mark.asyncio
    async def test_client_exit_status(self, layout):
        """Client exit statuses are returned, not raised."""
        assert await MySQLEngine(ToolPaths(mysql=FALSE)).run_client(layout, []) == 1
        assert await MySQLEngine(ToolPaths(mysql=TRUE)).run_client(layout, [], input=b"select 1;") == 0

    @pytest.mark.asyncio
    async def test_start_server_logs_and_detaches(self, layout):
        """Server output is appended to the server log."""
        engine = MySQLEngine(ToolPaths(mysqld=sys.executable))

        process = await engine.start_server(layout)
        await stop_server(process, drain_seconds=5.0)

        assert layout.log_path.read_text().startswith("Starting mysqld...\n")


class TestCreateEngine:
    """Tests for the engine factory."""

    def test_mysql(self):
        assert isinstance(create_engine(SandboxConfig(engine=EngineBackend.MYSQL)), MySQLEngine)

    def test_memory(self):
        assert isinstance(create_engine(SandboxConfig(engine=EngineBackend.MEMORY)), InMemoryEngine)
