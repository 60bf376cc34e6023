"""
MySQL sandbox test suite.

This package contains:
- unit/: Unit tests (no server, in-memory engine)
- integration/: Provisioning runs end to end against the in-memory engine
- e2e/: End-to-end tests against a real MySQL installation
"""
