"""
End-to-end tests against a real MySQL server.

Usage:
    SANDBOX_E2E_TESTS=1 pytest tests/e2e
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

from dbaas.mysql_sandbox.engine import MySQLEngine
from dbaas.mysql_sandbox.options import ProvisionOptions
from dbaas.mysql_sandbox.provisioner import Provisioner

REPO_ROOT = Path(__file__).resolve().parents[2]

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(
        os.environ.get("SANDBOX_E2E_TESTS", "0") != "1",
        reason="E2E tests disabled. Set SANDBOX_E2E_TESTS=1 to enable.",
    ),
]


def run_wrapper(base_dir: Path, *args: str) -> subprocess.CompletedProcess:
    """Run the generated mysql.sh with the given client arguments."""
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(REPO_ROOT), env.get("PYTHONPATH")]))
    return subprocess.run(
        [str(base_dir / "mysql.sh"), "--batch", "--skip-column-names", *args],
        env=env,
        stdin=subprocess.DEVNULL,
        capture_output=True,
        timeout=120,
    )


class TestSandbox:
    """Full provisioning flow with MySQLEngine."""

    @pytest.mark.asyncio
    async def test_provision_and_query(self, sandbox_config, base_dir):
        """A provisioned schema is reachable through mysql.sh."""
        engine = MySQLEngine(sandbox_config.tools)
        options = ProvisionOptions(base_dir=base_dir, schema="e2e_db", optimize=True)

        await Provisioner(options, engine, sandbox_config, argv=sys.argv, cwd=os.getcwd()).run()

        assert (base_dir / "data" / "mysql").is_dir()
        assert (base_dir / "data" / "e2e_db").is_dir()

        completed = run_wrapper(base_dir, "-e", "show databases")

        assert completed.returncode == 0, completed.stderr.decode()
        assert "e2e_db" in completed.stdout.decode().split()
        assert not (base_dir / "conf" / "mysql.sock").exists()

    @pytest.mark.asyncio
    async def test_drop_first(self, sandbox_config, base_dir):
        """drop_first recreates the schema empty."""
        engine = MySQLEngine(sandbox_config.tools)
        await Provisioner(ProvisionOptions(base_dir=base_dir, schema="e2e_db"), engine, sandbox_config).run()
        assert run_wrapper(base_dir, "-e", "create table e2e_db.t (id int)").returncode == 0

        options = ProvisionOptions(base_dir=base_dir, schema="e2e_db", drop_first=True)
        await Provisioner(options, engine, sandbox_config).run()

        completed = run_wrapper(base_dir, "-e", "show tables from e2e_db")
        assert completed.returncode == 0, completed.stderr.decode()
        assert completed.stdout.decode().split() == []
