# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from typing import Protocol

from komodoctl.deploy.naming import DesiredState, EntityNames
from komodoctl.utils.execution import ExecutionContext


class SourceControl(Protocol):
    """Holds the resources.toml that sync B pulls. Runs before/after the control-plane steps."""

    def create_repository(self, state: DesiredState, names: EntityNames, ctx: ExecutionContext) -> None: ...

    def publish_resources(self, state: DesiredState, names: EntityNames, ctx: ExecutionContext) -> None: ...

    def update_file(self, state: DesiredState, names: EntityNames, ctx: ExecutionContext) -> None: ...

    def delete_repository(self, names: EntityNames) -> None: ...
