"""
Connect-wrapper script rendering.

The wrapper is a small bash script placed at <base>/mysql.sh. It records
how and where it was generated and hands everything over to the Python
connect entry point, which owns the server start/stop lifecycle.
"""

from __future__ import annotations

import os
import shlex
import stat
import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence

from .layout import SandboxLayout

CONNECT_MODULE = "dbaas.mysql_sandbox.connect"

_TEMPLATE = """\
#!/bin/bash
#
# Usage: {wrapper} [mysql options ...] [< SQL_FILE] [> OUT_FILE]
#
# Runs a MySQL client (mysql) to connect to the MySQL server (mysqld)
# associated with the database located at:
#     "{base_dir}"
#
# The script first ensures that a MySQL server instance is running
# (according to whether the sock-file exists). If the script had to start
# the MySQL server instance, it will terminate this instance once the
# client operation has ended.
#
# All options, standard input and standard output are redirected to
# the MySQL client, so one may use this script as one would use the MySQL
# client without having to specify the target database.
#
# This script was generated by the following command:
#     {command}
# run when the current directory was:
#     {cwd}
# at {timestamp}.
#
cnf={cnf}
sock={sock}

exec {python} -m {module} --defaults-file="${{cnf}}" --socket="${{sock}}" -- "$@"
"""


def _one_line(value: str) -> str:
    """Flatten a value written into a comment line of the script."""
    return value.replace("\r", " ").replace("\n", " ")


def render_wrapper(
    layout: SandboxLayout,
    python: str,
    argv: Sequence[str] | None = None,
    cwd: str | None = None,
    now: datetime | None = None,
) -> str:
    """Render the connect-wrapper for a sandbox.

    Args:
        layout: Sandbox paths
        python: Interpreter that runs the connect entry point
        argv: Command line that generated the wrapper (defaults to sys.argv)
        cwd: Working directory at generation time
        now: Generation timestamp

    Returns:
        Script contents
    """
    argv = list(sys.argv if argv is None else argv)
    command = " ".join('"{}"'.format(_one_line(arg)) for arg in argv)
    return _TEMPLATE.format(
        wrapper=_one_line(str(layout.wrapper_path)),
        base_dir=_one_line(str(layout.base_dir)),
        command=command,
        cwd=_one_line(cwd or os.getcwd()),
        timestamp=(now or datetime.now()).strftime("%a %b %d %H:%M:%S %Y"),
        cnf=shlex.quote(str(layout.config_file)),
        sock=shlex.quote(str(layout.socket_path)),
        python=shlex.quote(python),
        module=CONNECT_MODULE,
    )


def write_wrapper(path: Path, content: str) -> None:
    """Write the wrapper and make it executable for everyone who can read it."""
    path.write_text(content)
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
