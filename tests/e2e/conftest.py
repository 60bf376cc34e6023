"""
E2E test fixtures for mysql-sandbox.

These tests require a local MySQL installation (mysqld, mysql, mysqlcheck)
runnable by the current user.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from dbaas.mysql_sandbox.config import SandboxConfig


@pytest.fixture(scope="session")
def sandbox_config() -> SandboxConfig:
    """Configuration for the real engine, from the environment."""
    config = SandboxConfig.from_env()
    for binary in (config.tools.mysqld, config.tools.mysql, config.tools.mysqlcheck):
        if shutil.which(binary) is None:
            pytest.skip(f"{binary} not available")
    return config


@pytest.fixture
def base_dir() -> Generator[Path, None, None]:
    """Fresh sandbox base directory."""
    with tempfile.TemporaryDirectory(prefix="mysql-sandbox-") as tmpdir:
        yield Path(tmpdir).resolve()
