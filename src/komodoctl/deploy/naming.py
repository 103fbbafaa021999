# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/deploy/naming.py

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import InvalidNameError

_UNSAFE = re.compile(r"[^A-Za-z0-9\-_.]")

REPOSITORY_SUFFIX = "_syncresources"


class DesiredState(BaseModel):
    """What the caller wants to exist. Frozen for the duration of a run."""

    model_config = ConfigDict(frozen=True)

    name: str
    node_address: str
    file_contents: Optional[str] = None
    generate_credentials: bool = False

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("name must not be empty")
        return v


def sanitize(name: str) -> str:
    """
    Repository-safe form of a name:
    spaces -> hyphens, anything outside [A-Za-z0-9-_.] removed, lower-cased.
    """
    return _UNSAFE.sub("", name.replace(" ", "-")).lower()


@dataclass(frozen=True)
class EntityNames:
    server: str
    context_sync: str
    setup_sync: str
    apply_procedure: str
    destroy_procedure: str
    restart_procedure: str
    repository: str
    repository_path: str

    @property
    def procedures(self) -> tuple[str, str, str]:
        return (self.apply_procedure, self.destroy_procedure, self.restart_procedure)


def derive_names(name: str, git_account: str) -> EntityNames:
    """
    Derive every remote identifier from the desired-state name.

    Pure: the same (name, git_account) always yields the same identifiers, which
    is what lets teardown address objects created by an earlier run.
    """
    if not name or not name.strip():
        raise InvalidNameError("name must not be empty")

    repo_base = sanitize(name)
    if not repo_base:
        raise InvalidNameError(f"name {name!r} has no usable characters after sanitizing")

    repository = repo_base + REPOSITORY_SUFFIX
    return EntityNames(
        server=f"server-{name.lower()}",
        context_sync=f"{name}_ContextWare",
        setup_sync=f"{name}_ResourceSetup",
        apply_procedure=f"{name}_ProcedureApply",
        destroy_procedure=f"{name}_ProcedureDestroy",
        restart_procedure=f"{name}_ProcedureRestart",
        repository=repository,
        repository_path=f"{git_account}/{repository}",
    )


def render_context_sync(names: EntityNames, git_account: str) -> str:
    """TOML for sync A: it declares sync B, pointing at the desired-state repository."""
    return (
        "[[resource_sync]]\n"
        f'name = "{names.setup_sync}"\n'
        "[resource_sync.config]\n"
        f'repo = "{names.repository_path}"\n'
        f'git_account = "{git_account}"\n'
        'resource_path = ["resources.toml"]'
    )
