"""
Error types for the MySQL sandbox.

This module defines all exception types raised while provisioning or
connecting to a sandbox:
- SandboxError: Base exception
- UsageError: Invalid options
- InitializationError: Data directory initialization refused
- CommandError: A client or optimize command exited non-zero
- EngineError: An engine binary could not be launched

Invariants:
    - All errors inherit from SandboxError
    - Errors include context for debugging
    - Error messages are actionable
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

APPARMOR_HINT = (
    "Make sure AppArmor isn't set up to block mysqld from this directory; see "
    "http://informationideas.com/news/2010/04/15/"
    "changing-mysql-data-directory-require-change-to-apparmor/"
)


class SandboxError(Exception):
    """Base exception for all sandbox errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SANDBOX_ERROR"
        self.details = details or {}


class UsageError(SandboxError):
    """Provisioning options are inconsistent.

    Raised when:
    - --drop-first is given without a database
    - Port is neither 'none' nor a valid TCP port
    """

    def __init__(self, message: str, option: Optional[str] = None) -> None:
        super().__init__(message, code="USAGE_ERROR", details={"option": option})
        self.option = option


class InitializationError(SandboxError):
    """The engine refused to initialize the data directory.

    The most common cause is a mandatory access control profile
    (AppArmor, SELinux) confining mysqld to its stock data directory,
    so the message always carries that remediation hint.
    """

    def __init__(
        self,
        data_dir: str,
        returncode: int,
        log_path: Optional[str] = None,
    ) -> None:
        msg = f"Error while creating database in {data_dir} (exit status {returncode}). "
        msg += APPARMOR_HINT
        if log_path:
            msg += f". Initialization output was written to {log_path}"

        super().__init__(
            msg,
            code="INITIALIZATION_ERROR",
            details={
                "data_dir": data_dir,
                "returncode": returncode,
                "log_path": log_path,
            },
        )
        self.data_dir = data_dir
        self.returncode = returncode
        self.log_path = log_path


class CommandError(SandboxError):
    """A downstream command exited with a non-zero status."""

    def __init__(self, command: List[str], returncode: int) -> None:
        super().__init__(
            f"Command {' '.join(command)!r} failed with exit status {returncode}",
            code="COMMAND_ERROR",
            details={"command": command, "returncode": returncode},
        )
        self.command = command
        self.returncode = returncode


class EngineError(SandboxError):
    """An engine binary could not be executed."""

    def __init__(self, message: str, binary: Optional[str] = None) -> None:
        super().__init__(message, code="ENGINE_ERROR", details={"binary": binary})
        self.binary = binary
