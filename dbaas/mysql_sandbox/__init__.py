"""
MySQL sandbox - standalone, non-privileged MySQL instances.

This package provisions a MySQL server under an arbitrary base directory,
without root privileges and without touching the system-wide instance:
- A data/ and conf/ layout with a dedicated config file and Unix socket
- A one-time data directory initialization (root without password)
- A generated mysql.sh connect-wrapper that starts the server on demand
  and stops it again after the client exits

Architecture:
    ┌─────────────┐  writes   ┌──────────┐  execs   ┌────────────────┐
    │ Provisioner │──────────▶│ mysql.sh │─────────▶│ ConnectSession │
    └──────┬──────┘           └──────────┘          └───────┬────────┘
           │                                                │
           ▼                                                ▼
    ┌─────────────────────────────────────────────────────────────┐
    │        ServerEngine (mysqld / mysql / mysqlcheck)           │
    └─────────────────────────────────────────────────────────────┘

Invariants:
    - All persistent state lives on disk under the base directory
    - Every one-shot step is gated by an on-disk marker (see state.py)
    - A server is stopped only by the invocation that started it

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
