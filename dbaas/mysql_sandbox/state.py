"""
On-disk marker state and the provisioning plan.

Every provisioning step is gated by a marker that can be checked on disk:

    config_exists     conf/mysql.cnf exists
    data_initialized  data/mysql/ exists
    wrapper_exists    mysql.sh exists
    schema_exists     data/<schema>/ exists

plan() maps (markers, options) to the ordered list of actions a run must
perform. It is a pure function, so the whole provisioning decision table can
be tested without touching a server.

Invariants:
    - A written config file or wrapper is never planned again
    - Initialization is planned only while data/mysql/ is missing
    - Actions are always ordered: dirs, config, data, wrapper, schema,
      connect, optimize
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List

from .layout import SandboxLayout
from .options import ProvisionOptions


class Action(Enum):
    """A provisioning step."""

    CREATE_DIRS = "create_dirs"
    WRITE_CONFIG = "write_config"
    INITIALIZE_DATA = "initialize_data"
    WRITE_WRAPPER = "write_wrapper"
    DROP_SCHEMA = "drop_schema"
    CREATE_SCHEMA = "create_schema"
    CONNECT = "connect"
    OPTIMIZE = "optimize"


@dataclass(frozen=True)
class MarkerState:
    """Which one-shot operations have already completed."""

    config_exists: bool = False
    data_initialized: bool = False
    wrapper_exists: bool = False
    schema_exists: bool = False

    @classmethod
    def scan(cls, layout: SandboxLayout, schema: str | None = None) -> MarkerState:
        """Read the markers of a sandbox from disk."""
        return cls(
            config_exists=layout.config_file.exists(),
            data_initialized=layout.system_schema_dir.is_dir(),
            wrapper_exists=layout.wrapper_path.exists(),
            schema_exists=bool(schema) and layout.schema_dir(schema).is_dir(),
        )


def plan(markers: MarkerState, options: ProvisionOptions) -> List[Action]:
    """Decide which actions a provisioning run performs.

    Args:
        markers: Current on-disk markers
        options: Provisioning options

    Returns:
        Actions in execution order
    """
    actions = [Action.CREATE_DIRS]

    if not markers.config_exists:
        actions.append(Action.WRITE_CONFIG)
    if not markers.data_initialized:
        actions.append(Action.INITIALIZE_DATA)
    if not markers.wrapper_exists:
        actions.append(Action.WRITE_WRAPPER)

    if options.schema and (options.drop_first or not markers.schema_exists):
        if options.drop_first:
            actions.append(Action.DROP_SCHEMA)
        actions.append(Action.CREATE_SCHEMA)

    if options.connect:
        actions.append(Action.CONNECT)
    if options.optimize:
        actions.append(Action.OPTIMIZE)

    return actions
