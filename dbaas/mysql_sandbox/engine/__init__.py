"""
Database engine abstraction for the MySQL sandbox.

This module provides a pluggable engine interface supporting:
- MySQL command-line tools (mysqld, mysql, mysqlcheck)
- In-memory (for testing)

Invariants:
    - Every server start, client run and optimize pass goes through an engine
    - Engines report exit statuses; only initialization failures raise

How to change safely:
    - New backends must implement ServerEngine protocol
    - Verify filesystem markers match what the real engine leaves behind
"""

from .base import (
    ServerEngine,
    ServerProcess,
    create_engine,
    defer_interrupts,
    stop_server,
)
from .memory import InMemoryEngine, InMemoryServerProcess
from .mysql import MySQLEngine

__all__ = [
    # Protocol and types
    "ServerEngine",
    "ServerProcess",
    # Helpers
    "create_engine",
    "defer_interrupts",
    "stop_server",
    # Implementations
    "MySQLEngine",
    "InMemoryEngine",
    "InMemoryServerProcess",
]
